"""Application configuration."""

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from uptimer.domain.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Pipeline settings, read from the environment once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Process identity
    region_name: Optional[str] = None
    worker_id: Optional[str] = None

    # Infrastructure
    redis_url: str = "redis://localhost:6379/0"
    database_url: str = "sqlite:///./uptimer.db"
    database_echo: bool = False  # Echo SQL queries for debugging

    # Streams
    job_stream: str = "uptimer:jobs"
    result_stream: str = "uptimer:results"
    aggregator_group: str = "result-aggregators"
    job_group_start_id: str = "$"
    result_group_start_id: str = "0"
    stream_max_length: Optional[int] = Field(default=None, gt=0)

    # Producer
    producer_interval_seconds: float = Field(default=180.0, gt=0)

    # Check worker
    worker_batch_size: int = Field(default=5, gt=0)
    worker_block_ms: int = Field(default=5000, ge=0)
    probe_timeout_seconds: float = Field(default=10.0, gt=0)
    ack_malformed_jobs: bool = False

    # Result aggregator
    aggregator_batch_size: int = Field(default=50, gt=0)
    aggregator_max_wait_ms: int = Field(default=2000, ge=0)
    aggregator_block_ms: int = Field(default=200, ge=0)

    # Fixed sleep after a failed loop iteration
    error_backoff_seconds: float = Field(default=1.0, ge=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("region_name", "worker_id", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        """Treat blank identity values as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def require_worker_identity(self) -> tuple[str, str]:
        """Return (region_name, worker_id), failing if either is missing."""
        missing = [
            name.upper()
            for name in ("region_name", "worker_id")
            if getattr(self, name) is None
        ]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} is required")
        return self.region_name, self.worker_id  # type: ignore[return-value]

    def require_consumer_id(self) -> str:
        """Return the consumer identity used by the aggregator."""
        if self.worker_id is None:
            raise ConfigurationError("WORKER_ID is required")
        return self.worker_id


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Check job and check result schemas.

Stream payloads are flat mappings of string keys to string values. The parse
helpers turn a raw entry into either a typed model or an explicit
``Rejected`` outcome, so loop code never inspects raw fields itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


@dataclass(frozen=True)
class StreamEntry:
    """One entry read from a durable stream."""

    id: str
    payload: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Rejected:
    """A stream entry whose payload failed validation."""

    entry_id: str
    reason: str


class CheckStatus(str, Enum):
    """Binary outcome of a probe."""

    UP = "up"
    DOWN = "down"


def entry_timestamp(entry_id: str) -> datetime:
    """Return the UTC creation time encoded in a ``<ms>-<seq>`` entry id."""
    millis, _, _ = entry_id.partition("-")
    return datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc)


class _WireModel(BaseModel):
    """Base for models exchanged as flat string payloads."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> dict[str, str]:
        """Serialize to the flat string mapping stored on a stream."""
        data = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        return {key: str(value) for key, value in data.items()}


class CheckJob(_WireModel):
    """Instruction for a worker to probe one endpoint."""

    endpoint_id: int = Field(..., alias="endpointId")
    url: str = Field(..., min_length=1)

    @field_validator("url", mode="before")
    @classmethod
    def strip_url(cls, v: object) -> object:
        """Strip whitespace so blank urls fail the length check."""
        return v.strip() if isinstance(v, str) else v


class CheckResult(_WireModel):
    """One observation of one endpoint from one region."""

    endpoint_id: int = Field(..., alias="endpointId")
    region_id: int = Field(..., alias="regionId")
    status: CheckStatus
    response_time_ms: int = Field(..., ge=0, alias="responseTimeMs")
    observed_at: datetime = Field(..., alias="observedAt")
    job_id: str = Field(..., min_length=1, alias="jobId")


ParsedJob = Union[CheckJob, Rejected]
ParsedResult = Union[CheckResult, Rejected]


def _describe(exc: ValidationError) -> str:
    """Flatten a pydantic validation error into a short reason."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(loc) for loc in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_job(entry: StreamEntry) -> ParsedJob:
    """Validate a job entry payload."""
    try:
        return CheckJob.model_validate(entry.payload)
    except ValidationError as e:
        return Rejected(entry_id=entry.id, reason=_describe(e))


def parse_result(entry: StreamEntry) -> ParsedResult:
    """Validate a result entry payload.

    Payloads without ``observedAt`` take the entry's own timestamp, and
    payloads without ``jobId`` are identified by the entry id, so a
    redelivered entry always maps to the same logical observation.
    """
    payload: dict[str, object] = dict(entry.payload)
    try:
        payload.setdefault("observedAt", entry_timestamp(entry.id))
    except ValueError:
        return Rejected(entry_id=entry.id, reason=f"malformed entry id {entry.id!r}")
    payload.setdefault("jobId", entry.id)
    try:
        return CheckResult.model_validate(payload)
    except ValidationError as e:
        return Rejected(entry_id=entry.id, reason=_describe(e))

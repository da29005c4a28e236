"""Shared pytest fixtures and configuration."""

import os
import tempfile
from collections.abc import Generator

import pytest

from uptimer.core.config import Settings, get_settings
from uptimer.database.connection import DatabaseManager
from uptimer.models import EndpointModel
from uptimer.repositories.check_store import SqlCheckStore
from uptimer.streams.memory import InMemoryStream


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Make every test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings for a worker in us-east with fast loops."""
    return Settings(
        _env_file=None,
        region_name="us-east",
        worker_id="worker-1",
        worker_block_ms=0,
        aggregator_block_ms=0,
        error_backoff_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def memory_stream() -> InMemoryStream:
    """Fresh in-process stream store."""
    return InMemoryStream()


@pytest.fixture
def test_db_url() -> Generator[str, None, None]:
    """Create a test database URL with a temporary SQLite file."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".db") as tmp_file:
        path = tmp_file.name
    yield f"sqlite:///{path}"
    if os.path.exists(path):
        os.unlink(path)


@pytest.fixture
def db(test_db_url: str) -> Generator[DatabaseManager, None, None]:
    """Database manager with all tables created."""
    manager = DatabaseManager(test_db_url)
    manager.create_all_tables()
    yield manager
    manager.drop_all_tables()
    manager.dispose()


@pytest.fixture
def store(db: DatabaseManager) -> SqlCheckStore:
    """Check store seeded with the default regions."""
    check_store = SqlCheckStore(db)
    check_store.seed_regions()
    return check_store


@pytest.fixture
def endpoints(db: DatabaseManager, store: SqlCheckStore) -> list[EndpointModel]:
    """Two monitored endpoints."""
    session = db.get_session()
    try:
        rows = [
            EndpointModel(url="https://up.example.com"),
            EndpointModel(url="https://down.example.com"),
        ]
        session.add_all(rows)
        session.commit()
        for row in rows:
            session.refresh(row)
        session.expunge_all()
        return rows
    finally:
        session.close()

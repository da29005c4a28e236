"""Database connection and session management."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from uptimer.models import Base


def _get_connect_args(database_url: str) -> dict[str, Any]:
    """Get connection arguments based on database type."""
    if database_url.startswith("sqlite"):
        # Sessions are used from worker threads via asyncio.to_thread
        return {"check_same_thread": False}
    return {}


def _set_sqlite_pragma(dbapi_connection: Any, _connection_record: Any) -> None:
    """Enable foreign key constraints in SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Owns the engine and session factory for one process.

    The engine is created on first use and shared by every session the
    manager hands out.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """Initialize database manager without connecting."""
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    def engine(self) -> Engine:
        """Get or create the SQLAlchemy engine."""
        if self._engine is None:
            self._engine = create_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,  # Verify connections before use
                connect_args=_get_connect_args(self.database_url),
            )
            if self.database_url.startswith("sqlite"):
                event.listen(self._engine, "connect", _set_sqlite_pragma)
        return self._engine

    def get_session(self) -> Session:
        """Get a new database session."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
        return self._session_factory()

    def create_all_tables(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)

    def drop_all_tables(self) -> None:
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        """Release pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

"""Persistent store used by the check pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from uptimer.domain.exceptions import RegionNotFoundError, StoreError
from uptimer.models.check_result import CheckResultModel
from uptimer.models.endpoint import EndpointModel
from uptimer.models.region import RegionModel
from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents

if TYPE_CHECKING:
    from sqlalchemy import Insert
    from sqlalchemy.orm import Session

    from uptimer.database.connection import DatabaseManager
    from uptimer.schemas.checks import CheckResult

logger = get_logger(__name__)

DEFAULT_REGIONS = ("us-east", "us-west", "eu-central", "ap-south")

# Columns identifying one logical observation
OBSERVATION_KEY = ("endpoint_id", "region_id", "job_id")


@dataclass(frozen=True)
class EndpointRecord:
    """Endpoint row as listed for a scan; fields may be missing on bad rows."""

    id: Optional[int]
    url: Optional[str]


class CheckStore(ABC):
    """Operations the pipeline needs from the relational store."""

    @abstractmethod
    def list_endpoints(self) -> list[EndpointRecord]:
        """Return every monitored endpoint."""

    @abstractmethod
    def bulk_insert_results(self, results: Sequence[CheckResult]) -> None:
        """Insert results, silently skipping rows that already exist.

        Rows whose endpoint or region no longer exists are dropped with a
        warning; the rest of the batch is still written.
        """

    @abstractmethod
    def resolve_region_id(self, name: str) -> int:
        """Return the id of the region called ``name``.

        Raises:
            RegionNotFoundError: If no such region is provisioned.
        """


class SqlCheckStore(CheckStore):
    """SQLAlchemy implementation of the check store."""

    def __init__(self, db: DatabaseManager) -> None:
        """Initialize the store with a process-scoped database manager."""
        self.db = db

    def list_endpoints(self) -> list[EndpointRecord]:
        session = self.db.get_session()
        try:
            rows = session.execute(
                select(EndpointModel.id, EndpointModel.url).order_by(EndpointModel.id)
            ).all()
            return [EndpointRecord(id=row.id, url=row.url) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError("list_endpoints", str(e)) from e
        finally:
            session.close()

    def bulk_insert_results(self, results: Sequence[CheckResult]) -> None:
        if not results:
            return

        now = datetime.now(timezone.utc)
        rows = [
            {
                "endpoint_id": result.endpoint_id,
                "region_id": result.region_id,
                "status": result.status.value,
                "response_time_ms": result.response_time_ms,
                "observed_at": result.observed_at,
                "job_id": result.job_id,
                "created_at": now,
            }
            for result in results
        ]

        session = self.db.get_session()
        try:
            rows = self._drop_orphans(session, rows)
            if not rows:
                session.commit()
                return
            stmt = self._insert_statement(session)
            try:
                session.execute(stmt, rows)
                session.commit()
            except IntegrityError:
                # A referenced row disappeared after the check above
                session.rollback()
                self._insert_rowwise(session, stmt, rows)
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("bulk_insert_results", str(e)) from e
        finally:
            session.close()

    @staticmethod
    def _insert_statement(session: Session) -> Insert:
        """INSERT that skips rows already present under the observation key.

        SQLite and PostgreSQL use ON CONFLICT DO NOTHING; other dialects get a
        plain INSERT, and duplicates fall through to the row-wise path.
        """
        table = CheckResultModel.__table__
        dialect = session.get_bind().dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(table)
        elif dialect == "postgresql":
            stmt = postgresql.insert(table)
        else:
            return insert(table)
        return stmt.on_conflict_do_nothing(index_elements=list(OBSERVATION_KEY))

    @staticmethod
    def _drop_orphans(
        session: Session, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Remove rows whose endpoint or region no longer exists."""
        wanted_endpoints = sorted({row["endpoint_id"] for row in rows})
        wanted_regions = sorted({row["region_id"] for row in rows})
        endpoint_ids = set(
            session.execute(
                select(EndpointModel.id).where(EndpointModel.id.in_(wanted_endpoints))
            ).scalars()
        )
        region_ids = set(
            session.execute(
                select(RegionModel.id).where(RegionModel.id.in_(wanted_regions))
            ).scalars()
        )

        kept = []
        for row in rows:
            if row["endpoint_id"] in endpoint_ids and row["region_id"] in region_ids:
                kept.append(row)
            else:
                logger.warning(
                    LogEvents.STORE_RESULT_ORPHAN_DROPPED,
                    **{key: row[key] for key in OBSERVATION_KEY},
                )
        return kept

    @staticmethod
    def _insert_rowwise(
        session: Session, stmt: Insert, rows: list[dict[str, Any]]
    ) -> None:
        """Insert one row per transaction, skipping rows that violate a constraint."""
        for row in rows:
            try:
                session.execute(stmt, row)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning(
                    LogEvents.STORE_RESULT_ROW_SKIPPED,
                    reason=str(e.orig),
                    **{key: row[key] for key in OBSERVATION_KEY},
                )

    def resolve_region_id(self, name: str) -> int:
        session = self.db.get_session()
        try:
            region_id = session.execute(
                select(RegionModel.id).where(RegionModel.name == name)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError("resolve_region_id", str(e)) from e
        finally:
            session.close()

        if region_id is None:
            raise RegionNotFoundError(name)
        return region_id

    def seed_regions(self, names: Iterable[str] = DEFAULT_REGIONS) -> list[str]:
        """Create any of ``names`` that do not exist yet.

        Returns:
            The names that were created.
        """
        session = self.db.get_session()
        try:
            existing = set(session.execute(select(RegionModel.name)).scalars())
            created = [name for name in dict.fromkeys(names) if name not in existing]
            session.add_all(RegionModel(name=name) for name in created)
            session.commit()
            return created
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError("seed_regions", str(e)) from e
        finally:
            session.close()

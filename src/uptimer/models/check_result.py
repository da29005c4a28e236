"""Check result database model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptimer.models.base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from uptimer.models.endpoint import EndpointModel


class CheckResultModel(BaseModel, TimestampMixin):
    """One persisted observation of an endpoint from a region.

    ``job_id`` is the stream id of the job that produced the observation.
    Together with endpoint and region it identifies the observation, so a
    redelivered job or result maps onto the existing row.
    """

    __tablename__ = "check_results"

    endpoint_id: Mapped[int] = mapped_column(
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
    )
    region_id: Mapped[int] = mapped_column(
        ForeignKey("regions.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(8), nullable=False)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    job_id: Mapped[str] = mapped_column(String(64), nullable=False)

    endpoint: Mapped["EndpointModel"] = relationship(
        "EndpointModel", back_populates="results"
    )

    __table_args__ = (
        Index("idx_check_results_endpoint_observed", "endpoint_id", "observed_at"),
        UniqueConstraint(
            "endpoint_id",
            "region_id",
            "job_id",
            name="uq_check_results_observation",
        ),
    )

    def __repr__(self) -> str:
        """String representation of CheckResult."""
        return (
            f"<CheckResult(id={self.id}, endpoint_id={self.endpoint_id}, "
            f"region_id={self.region_id}, status='{self.status}')>"
        )

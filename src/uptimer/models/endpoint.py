"""Monitored endpoint database model."""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptimer.models.base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from uptimer.models.check_result import CheckResultModel


class EndpointModel(BaseModel, TimestampMixin):
    """A URL registered for uptime checks."""

    __tablename__ = "endpoints"

    url: Mapped[str] = mapped_column(String(2048), nullable=False)

    results: Mapped[list["CheckResultModel"]] = relationship(
        "CheckResultModel",
        back_populates="endpoint",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """String representation of Endpoint."""
        return f"<Endpoint(id={self.id}, url='{self.url}')>"

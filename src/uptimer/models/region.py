"""Probe region database model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from uptimer.models.base import BaseModel


class RegionModel(BaseModel):
    """Geographic origin of probes; provisioned by operators."""

    __tablename__ = "regions"

    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    def __repr__(self) -> str:
        """String representation of Region."""
        return f"<Region(id={self.id}, name='{self.name}')>"

"""Models module for uptimer."""

from uptimer.models.base import Base, BaseModel, TimestampMixin
from uptimer.models.check_result import CheckResultModel
from uptimer.models.endpoint import EndpointModel
from uptimer.models.region import RegionModel

__all__ = [
    "Base",
    "BaseModel",
    "CheckResultModel",
    "EndpointModel",
    "RegionModel",
    "TimestampMixin",
]

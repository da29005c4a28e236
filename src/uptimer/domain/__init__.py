"""Domain package for pipeline errors."""

from uptimer.domain.exceptions import (
    ConfigurationError,
    DomainException,
    RegionNotFoundError,
    StoreError,
    StreamError,
)

__all__ = [
    "ConfigurationError",
    "DomainException",
    "RegionNotFoundError",
    "StoreError",
    "StreamError",
]

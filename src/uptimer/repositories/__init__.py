"""Repository layer for uptimer."""

from uptimer.repositories.check_store import (
    DEFAULT_REGIONS,
    CheckStore,
    EndpointRecord,
    SqlCheckStore,
)

__all__ = [
    "DEFAULT_REGIONS",
    "CheckStore",
    "EndpointRecord",
    "SqlCheckStore",
]

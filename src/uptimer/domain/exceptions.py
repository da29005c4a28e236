"""Domain-specific exceptions."""

from __future__ import annotations


class DomainException(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR"):
        """Initialize domain exception."""
        self.message = message
        self.error_code = error_code
        super().__init__(message)


# ===========================================
# FATAL STARTUP ERRORS
# ===========================================


class ConfigurationError(DomainException):
    """Raised when the process cannot start with its configuration.

    These errors abort the process before any loop is started.
    """

    def __init__(self, message: str, error_code: str = "CONFIGURATION_ERROR"):
        """Initialize configuration error."""
        super().__init__(message, error_code)


class RegionNotFoundError(ConfigurationError):
    """Raised when a configured region name has no provisioned region."""

    def __init__(self, name: str):
        """Initialize region not found error."""
        self.name = name
        super().__init__(
            f"Region '{name}' is not provisioned.",
            "REGION_NOT_FOUND",
        )


# ===========================================
# TRANSIENT INFRASTRUCTURE ERRORS
# ===========================================


class StreamError(DomainException):
    """Raised when the durable stream backend fails an operation.

    Callers retry on their next loop iteration.
    """

    def __init__(self, operation: str, stream: str, reason: str):
        """Initialize stream error."""
        self.operation = operation
        self.stream = stream
        self.reason = reason
        super().__init__(
            f"Stream {operation} on '{stream}' failed: {reason}",
            "STREAM_ERROR",
        )


class StoreError(DomainException):
    """Raised when the persistent store fails an operation."""

    def __init__(self, operation: str, reason: str):
        """Initialize store error."""
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store {operation} failed: {reason}", "STORE_ERROR")

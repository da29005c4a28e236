"""Structured logging for the uptimer processes.

Producer, worker and aggregator processes share one structlog setup: JSON
lines on stdout by default, or a colored console renderer for local runs.
"""

import logging
import sys

import structlog
from structlog.typing import EventDict, Processor

from uptimer.observability.constants import SERVICE_NAME


def add_service_name(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Tag every event with ``service="uptimer"``.

    Lets producer, worker and aggregator lines be filtered together once
    they are shipped to a shared log store.
    """
    event_dict["service"] = SERVICE_NAME
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Install the structlog pipeline and the stdout root handler.

    Args:
        log_level: Root level name, case-insensitive.
        log_format: ``json`` for one JSON object per line, ``console`` for
            colored human-readable output.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "console":
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound logger; pass the module name.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info(LogEvents.WORKER_PROBE_COMPLETED, endpoint_id=42)
    """
    return structlog.get_logger(name)

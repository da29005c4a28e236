"""Observability layer for uptimer.

Usage:
    from uptimer.observability import get_logger

    logger = get_logger(__name__)
    logger.info("producer.cycle.completed", enqueued=12)
"""

from uptimer.observability.logger import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]

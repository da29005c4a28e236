"""Schemas module for uptimer."""

from uptimer.schemas.checks import (
    CheckJob,
    CheckResult,
    CheckStatus,
    ParsedJob,
    ParsedResult,
    Rejected,
    StreamEntry,
    entry_timestamp,
    parse_job,
    parse_result,
)

__all__ = [
    "CheckJob",
    "CheckResult",
    "CheckStatus",
    "ParsedJob",
    "ParsedResult",
    "Rejected",
    "StreamEntry",
    "entry_timestamp",
    "parse_job",
    "parse_result",
]

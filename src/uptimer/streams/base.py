"""Durable stream interface.

A stream is an append-only log of entries with strictly increasing ids.
Consumer groups give competing delivery: every entry is handed to exactly one
consumer of a group and stays in that group's pending set until acked.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Optional

from uptimer.schemas.checks import StreamEntry


class DurableStream(ABC):
    """Append-only log with consumer-group delivery."""

    @abstractmethod
    async def append(self, stream: str, payload: Mapping[str, str]) -> str:
        """Append one entry and return its id."""

    @abstractmethod
    async def append_bulk(
        self, stream: str, payloads: Sequence[Mapping[str, str]]
    ) -> list[str]:
        """Append entries in one round trip and return their ids in order.

        A failure is reported for the whole batch; nothing is retried here.
        """

    @abstractmethod
    async def ensure_group(self, stream: str, group: str, start_id: str = "$") -> None:
        """Create a consumer group, creating the stream if needed.

        Creating a group that already exists succeeds.
        """

    @abstractmethod
    async def read_group(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int] = None,
    ) -> list[StreamEntry]:
        """Read entries never delivered to ``group`` before.

        Waits up to ``block_ms`` when nothing is available and returns an
        empty list on timeout. ``None`` means do not wait.
        """

    async def ack(self, stream: str, group: str, entry_id: str) -> int:
        """Acknowledge one entry; unknown or acked ids are ignored."""
        return await self.ack_bulk(stream, group, [entry_id])

    @abstractmethod
    async def ack_bulk(self, stream: str, group: str, entry_ids: Sequence[str]) -> int:
        """Acknowledge entries and return how many were pending."""

    @abstractmethod
    async def pending_count(self, stream: str, group: str) -> int:
        """Number of entries delivered to ``group`` but not yet acked."""

    @abstractmethod
    async def length(self, stream: str) -> int:
        """Number of entries currently held by ``stream``."""

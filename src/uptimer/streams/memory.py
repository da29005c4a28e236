"""In-process durable stream with Redis Streams semantics.

Used by tests and single-process runs. Entry ids follow the Redis
``<ms>-<seq>`` form, groups keep a delivery cursor and a pending set, and
blocking reads wait on a condition instead of polling.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from uptimer.domain.exceptions import StreamError
from uptimer.schemas.checks import StreamEntry
from uptimer.streams.base import DurableStream


def _id_key(entry_id: str) -> tuple[int, int]:
    millis, _, seq = entry_id.partition("-")
    return int(millis), int(seq or 0)


@dataclass
class PendingEntry:
    """Delivery record for an entry held by one consumer."""

    consumer: str
    delivery_count: int = 1


@dataclass
class ConsumerGroup:
    """Cursor plus pending-entry bookkeeping for one group."""

    name: str
    last_delivered: tuple[int, int]
    pending: dict[str, PendingEntry] = field(default_factory=dict)


@dataclass
class _Stream:
    entries: list[StreamEntry] = field(default_factory=list)
    last_id: tuple[int, int] = (0, 0)
    groups: dict[str, ConsumerGroup] = field(default_factory=dict)


class InMemoryStream(DurableStream):
    """Single-process stream store keyed by stream name."""

    def __init__(
        self,
        max_length: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty store.

        Args:
            max_length: Cap on entries kept per stream; oldest are trimmed.
            clock: Wall clock in seconds, used to stamp entry ids.
        """
        self.max_length = max_length
        self._clock = clock
        self._streams: dict[str, _Stream] = {}
        self._appended = asyncio.Condition()

    def _stream(self, name: str) -> _Stream:
        return self._streams.setdefault(name, _Stream())

    def _next_id(self, stream: _Stream) -> str:
        millis = int(self._clock() * 1000)
        last_millis, last_seq = stream.last_id
        if millis > last_millis:
            stream.last_id = (millis, 0)
        else:
            stream.last_id = (last_millis, last_seq + 1)
        return f"{stream.last_id[0]}-{stream.last_id[1]}"

    def _add(self, name: str, payload: Mapping[str, str]) -> str:
        for key, value in payload.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise StreamError("append", name, "payload must map str to str")
        stream = self._stream(name)
        entry = StreamEntry(id=self._next_id(stream), payload=dict(payload))
        stream.entries.append(entry)
        if self.max_length is not None and len(stream.entries) > self.max_length:
            del stream.entries[: len(stream.entries) - self.max_length]
        return entry.id

    async def append(self, stream: str, payload: Mapping[str, str]) -> str:
        async with self._appended:
            entry_id = self._add(stream, payload)
            self._appended.notify_all()
        return entry_id

    async def append_bulk(
        self, stream: str, payloads: Sequence[Mapping[str, str]]
    ) -> list[str]:
        async with self._appended:
            ids = [self._add(stream, payload) for payload in payloads]
            self._appended.notify_all()
        return ids

    async def ensure_group(self, stream: str, group: str, start_id: str = "$") -> None:
        state = self._stream(stream)
        if group in state.groups:
            return
        cursor = state.last_id if start_id == "$" else _id_key(start_id)
        state.groups[group] = ConsumerGroup(name=group, last_delivered=cursor)

    def _group(self, stream: str, group: str) -> ConsumerGroup:
        state = self._streams.get(stream)
        if state is None or group not in state.groups:
            raise StreamError(
                "read_group", stream, f"NOGROUP no consumer group '{group}'"
            )
        return state.groups[group]

    def _deliver(
        self, stream: str, group: str, consumer: str, count: int
    ) -> list[StreamEntry]:
        consumer_group = self._group(stream, group)
        state = self._streams[stream]
        delivered: list[StreamEntry] = []
        for entry in state.entries:
            if len(delivered) >= count:
                break
            key = _id_key(entry.id)
            if key <= consumer_group.last_delivered:
                continue
            consumer_group.last_delivered = key
            consumer_group.pending[entry.id] = PendingEntry(consumer=consumer)
            delivered.append(entry)
        return delivered

    async def read_group(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int] = None,
    ) -> list[StreamEntry]:
        async with self._appended:
            delivered = self._deliver(stream, group, consumer, count)
            if delivered or not block_ms:
                return delivered
            try:
                await asyncio.wait_for(
                    self._appended.wait_for(lambda: self._has_new(stream, group)),
                    timeout=block_ms / 1000,
                )
            except asyncio.TimeoutError:
                return []
            return self._deliver(stream, group, consumer, count)

    def _has_new(self, stream: str, group: str) -> bool:
        state = self._streams[stream]
        cursor = self._group(stream, group).last_delivered
        return bool(state.entries) and _id_key(state.entries[-1].id) > cursor

    async def ack_bulk(self, stream: str, group: str, entry_ids: Sequence[str]) -> int:
        state = self._streams.get(stream)
        if state is None or group not in state.groups:
            return 0
        pending = state.groups[group].pending
        return sum(1 for entry_id in entry_ids if pending.pop(entry_id, None))

    async def pending_count(self, stream: str, group: str) -> int:
        return len(self._group(stream, group).pending)

    async def pending_entries(self, stream: str, group: str) -> dict[str, PendingEntry]:
        """Snapshot of a group's pending set."""
        return dict(self._group(stream, group).pending)

    async def group_names(self, stream: str) -> list[str]:
        """Names of the consumer groups defined on ``stream``."""
        state = self._streams.get(stream)
        return list(state.groups) if state else []

    async def length(self, stream: str) -> int:
        state = self._streams.get(stream)
        return len(state.entries) if state else 0

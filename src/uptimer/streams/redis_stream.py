"""Durable stream backed by Redis Streams."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Optional

from redis.exceptions import RedisError, ResponseError

from uptimer.core.redis_client import RedisConnection
from uptimer.domain.exceptions import StreamError
from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents
from uptimer.schemas.checks import StreamEntry
from uptimer.streams.base import DurableStream

logger = get_logger(__name__)

# Cursor selecting entries never delivered to the group
NEW_ENTRIES_CURSOR = ">"


class RedisStream(DurableStream):
    """Redis Streams implementation (XADD / XREADGROUP / XACK)."""

    def __init__(
        self, connection: RedisConnection, max_length: Optional[int] = None
    ) -> None:
        """Initialize the stream over a shared connection handle.

        Args:
            connection: Process-scoped Redis connection.
            max_length: Approximate cap on entries kept per stream.
        """
        self.connection = connection
        self.max_length = max_length

    async def append(self, stream: str, payload: Mapping[str, str]) -> str:
        try:
            return await self.connection.client.xadd(
                stream, dict(payload), maxlen=self.max_length, approximate=True
            )
        except RedisError as e:
            raise StreamError("append", stream, str(e)) from e

    async def append_bulk(
        self, stream: str, payloads: Sequence[Mapping[str, str]]
    ) -> list[str]:
        if not payloads:
            return []
        try:
            async with self.connection.client.pipeline(transaction=False) as pipe:
                for payload in payloads:
                    pipe.xadd(
                        stream,
                        dict(payload),
                        maxlen=self.max_length,
                        approximate=True,
                    )
                return list(await pipe.execute())
        except RedisError as e:
            raise StreamError("append_bulk", stream, str(e)) from e

    async def ensure_group(self, stream: str, group: str, start_id: str = "$") -> None:
        try:
            await self.connection.client.xgroup_create(
                stream, group, id=start_id, mkstream=True
            )
            logger.info(LogEvents.STREAM_GROUP_CREATED, stream=stream, group=group)
        except ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug(LogEvents.STREAM_GROUP_EXISTS, stream=stream, group=group)
                return
            raise StreamError("ensure_group", stream, str(e)) from e
        except RedisError as e:
            raise StreamError("ensure_group", stream, str(e)) from e

    async def read_group(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int] = None,
    ) -> list[StreamEntry]:
        try:
            response = await self.connection.client.xreadgroup(
                group,
                consumer,
                streams={stream: NEW_ENTRIES_CURSOR},
                count=count,
                # BLOCK 0 waits forever, so a zero timeout means no blocking
                block=block_ms or None,
            )
        except RedisError as e:
            raise StreamError("read_group", stream, str(e)) from e
        return self._parse_read_response(response)

    @staticmethod
    def _parse_read_response(response: Any) -> list[StreamEntry]:
        """Flatten an XREADGROUP reply of the form ``[[name, [(id, fields), ...]]]``."""
        if not response:
            return []

        entries: list[StreamEntry] = []
        for _name, messages in response:
            for entry_id, fields in messages or []:
                entries.append(StreamEntry(id=entry_id, payload=dict(fields or {})))
        return entries

    async def ack_bulk(self, stream: str, group: str, entry_ids: Sequence[str]) -> int:
        if not entry_ids:
            return 0
        try:
            return await self.connection.client.xack(stream, group, *entry_ids)
        except RedisError as e:
            raise StreamError("ack", stream, str(e)) from e

    async def pending_count(self, stream: str, group: str) -> int:
        try:
            summary = await self.connection.client.xpending(stream, group)
        except RedisError as e:
            raise StreamError("pending_count", stream, str(e)) from e
        return int(summary.get("pending", 0)) if summary else 0

    async def length(self, stream: str) -> int:
        try:
            return await self.connection.client.xlen(stream)
        except RedisError as e:
            raise StreamError("length", stream, str(e)) from e

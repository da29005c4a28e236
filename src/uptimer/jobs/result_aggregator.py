"""Result aggregator background job.

Buffers result entries read from the result stream and flushes them to the
store as one idempotent bulk insert when either the buffer reaches the batch
size or the oldest unflushed data is older than the maximum wait.

Entries are acknowledged only after the store write of their flush succeeds.
Malformed results are logged and acknowledged without being persisted, so an
unfixable payload is not redelivered forever.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Optional

from uptimer.core.runloop import RunLoop, Sleep
from uptimer.domain.exceptions import StoreError
from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents
from uptimer.schemas.checks import CheckResult, ParsedResult, Rejected, parse_result

if TYPE_CHECKING:
    from uptimer.core.config import Settings
    from uptimer.repositories.check_store import CheckStore
    from uptimer.streams.base import DurableStream

logger = get_logger(__name__)


class AggregatorState(str, Enum):
    """Aggregator state; there is no terminal state."""

    WAITING = "waiting"
    FLUSHING = "flushing"


class ResultAggregator:
    """Batches check results into idempotent store writes.

    Attributes:
        group: Consumer group on the result stream
        consumer: Consumer name within the group
        batch_size: Buffered entries that force a flush
        max_wait: Seconds after the last flush that force a flush
        state: Current ``AggregatorState``
        buffer: Buffered ``(entry_id, parsed result)`` pairs in read order
    """

    def __init__(
        self,
        stream: DurableStream,
        store: CheckStore,
        settings: Settings,
        *,
        consumer: str,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.stream = stream
        self.store = store
        self.result_stream = settings.result_stream
        self.group = settings.aggregator_group
        self.group_start_id = settings.result_group_start_id
        self.consumer = consumer
        self.batch_size = settings.aggregator_batch_size
        self.max_wait = settings.aggregator_max_wait_ms / 1000
        self.block_ms = settings.aggregator_block_ms
        self._clock = clock
        self.state = AggregatorState.WAITING
        self.buffer: list[tuple[str, ParsedResult]] = []
        self.last_flush = clock()
        # Persisted entries whose ack failed; acked again before the next flush
        self.unacked: list[str] = []
        self.loop = RunLoop(
            f"aggregator:{consumer}",
            self.run_once,
            error_backoff=settings.error_backoff_seconds,
            sleep=sleep,
        )

    @classmethod
    async def create(
        cls,
        stream: DurableStream,
        store: CheckStore,
        settings: Settings,
        **kwargs,
    ) -> ResultAggregator:
        """Build an aggregator and make sure its consumer group exists.

        Raises:
            ConfigurationError: If no consumer identity is configured.
        """
        consumer = settings.require_consumer_id()
        aggregator = cls(stream, store, settings, consumer=consumer, **kwargs)
        await stream.ensure_group(
            aggregator.result_stream, aggregator.group, aggregator.group_start_id
        )
        return aggregator

    def should_flush(self) -> bool:
        """Whether the buffer is full or the wait since the last flush is over."""
        return (
            len(self.buffer) >= self.batch_size
            or self._clock() - self.last_flush > self.max_wait
        )

    async def read(self) -> int:
        """Read available result entries into the buffer."""
        room = self.batch_size - len(self.buffer)
        if room <= 0:
            return 0
        entries = await self.stream.read_group(
            self.result_stream,
            self.group,
            self.consumer,
            count=room,
            block_ms=self.block_ms,
        )
        self.buffer.extend((entry.id, parse_result(entry)) for entry in entries)
        return len(entries)

    async def run_once(self) -> int:
        """Run one read-then-maybe-flush iteration.

        Acknowledgements left over from a failed ack are retried here when
        there is nothing to flush.

        Returns:
            The number of entries flushed, 0 if no flush happened.
        """
        await self.read()
        if self.buffer and self.should_flush():
            return await self.flush()
        if not self.buffer and self.unacked:
            await self._ack(list(self.unacked))
        return 0

    async def flush(self) -> int:
        """Persist the buffer and acknowledge it.

        Returns:
            The number of entries acknowledged by this flush.

        Raises:
            StoreError: If the store write fails. Nothing is acknowledged and
                the buffer is kept for the next attempt.
        """
        self.state = AggregatorState.FLUSHING
        try:
            batch = list(self.buffer)
            valid: list[CheckResult] = []
            for entry_id, parsed in batch:
                if isinstance(parsed, Rejected):
                    logger.warning(
                        LogEvents.AGGREGATOR_RESULT_REJECTED,
                        entry_id=entry_id,
                        reason=parsed.reason,
                    )
                else:
                    valid.append(parsed)

            if valid:
                try:
                    await self._persist(valid)
                except StoreError as e:
                    logger.error(
                        LogEvents.AGGREGATOR_FLUSH_FAILED,
                        buffered=len(batch),
                        error=str(e),
                    )
                    raise

            flushed_ids = [entry_id for entry_id, _ in batch]
            del self.buffer[: len(batch)]
            self.last_flush = self._clock()
            await self._ack([*self.unacked, *flushed_ids])

            logger.info(
                LogEvents.AGGREGATOR_FLUSH_COMPLETED,
                persisted=len(valid),
                rejected=len(batch) - len(valid),
            )
            return len(flushed_ids)
        finally:
            self.state = AggregatorState.WAITING

    async def _persist(self, results: list[CheckResult]) -> None:
        try:
            await asyncio.to_thread(self.store.bulk_insert_results, results)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError("bulk_insert_results", str(e)) from e

    async def _ack(self, entry_ids: list[str]) -> None:
        """Acknowledge persisted entries, keeping them for retry on failure."""
        try:
            await self.stream.ack_bulk(self.result_stream, self.group, entry_ids)
            self.unacked = []
        except Exception as e:
            self.unacked = entry_ids
            logger.error(
                LogEvents.AGGREGATOR_ACK_FAILED,
                entries=len(entry_ids),
                error=str(e),
            )

    async def start(self) -> None:
        """Read and flush until stopped."""
        logger.info(
            LogEvents.AGGREGATOR_STARTED,
            group=self.group,
            consumer=self.consumer,
            batch_size=self.batch_size,
            max_wait_ms=int(self.max_wait * 1000),
        )
        await self.loop.run()

    def stop(self) -> None:
        """Stop after the current iteration."""
        self.loop.stop()

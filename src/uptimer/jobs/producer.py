"""Scan producer background job.

Every interval, lists the monitored endpoints and appends one check job per
endpoint to the job stream. A failed cycle is logged and retried on the next
interval; duplicate jobs across cycles are harmless because probes are
read-only.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from uptimer.core.runloop import RunLoop, Sleep
from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents
from uptimer.schemas.checks import CheckJob

if TYPE_CHECKING:
    from uptimer.core.config import Settings
    from uptimer.repositories.check_store import CheckStore, EndpointRecord
    from uptimer.streams.base import DurableStream

logger = get_logger(__name__)


class Producer:
    """Periodically materializes one CheckJob per monitored endpoint.

    Attributes:
        job_stream: Name of the stream jobs are appended to
        interval: Seconds between scan cycles
    """

    def __init__(
        self,
        stream: DurableStream,
        store: CheckStore,
        settings: Settings,
        *,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.stream = stream
        self.store = store
        self.job_stream = settings.job_stream
        self.interval = settings.producer_interval_seconds
        self.loop = RunLoop(
            "producer",
            self.run_cycle,
            interval=self.interval,
            # A failed enqueue waits for the next regular cycle
            error_backoff=self.interval,
            sleep=sleep,
        )

    @staticmethod
    def build_job(record: EndpointRecord) -> Optional[CheckJob]:
        """Build a job from an endpoint record, or None if the record is unusable."""
        try:
            return CheckJob(endpoint_id=record.id, url=record.url)
        except ValidationError as e:
            logger.warning(
                LogEvents.PRODUCER_ENDPOINT_SKIPPED,
                endpoint_id=record.id,
                url=record.url,
                reason=str(e.errors()[0]["msg"]),
            )
            return None

    async def run_cycle(self) -> int:
        """List endpoints and enqueue one job each.

        Returns:
            The number of jobs appended.
        """
        records = await asyncio.to_thread(self.store.list_endpoints)
        jobs = [job for job in map(self.build_job, records) if job is not None]
        if not jobs:
            logger.debug(LogEvents.PRODUCER_CYCLE_COMPLETED, enqueued=0)
            return 0

        try:
            await self.stream.append_bulk(
                self.job_stream, [job.to_payload() for job in jobs]
            )
        except Exception as e:
            logger.error(
                LogEvents.PRODUCER_ENQUEUE_FAILED,
                stream=self.job_stream,
                jobs=len(jobs),
                error=str(e),
            )
            raise

        logger.info(
            LogEvents.PRODUCER_CYCLE_COMPLETED,
            enqueued=len(jobs),
            skipped=len(records) - len(jobs),
        )
        return len(jobs)

    async def start(self) -> None:
        """Run scan cycles until stopped, starting with one immediately."""
        logger.info(
            LogEvents.PRODUCER_STARTED, stream=self.job_stream, interval=self.interval
        )
        await self.loop.run()

    def stop(self) -> None:
        """Stop after the current cycle."""
        self.loop.stop()

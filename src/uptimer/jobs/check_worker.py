"""Regional check worker background job.

A worker belongs to the consumer group named after its region on the job
stream. Each iteration reads a batch of jobs, probes every endpoint in the
batch concurrently, appends one result per probe to the result stream and
then acknowledges, in one call, every job whose result was appended.

Probe outcomes are strictly binary:

1. Any HTTP response, whatever its status code: ``up``
2. Any transport, connection, timeout or URL error: ``down``

``probe_timeout_seconds`` bounds the whole probe, from connect to response
headers. The response body is never read.

A ``down`` observation is a normal result and is acknowledged like any other.
Only a failure to append the result leaves the job pending.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import httpx

from uptimer.core.runloop import RunLoop, Sleep
from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents
from uptimer.schemas.checks import (
    CheckJob,
    CheckResult,
    CheckStatus,
    Rejected,
    parse_job,
)

if TYPE_CHECKING:
    from uptimer.core.config import Settings
    from uptimer.repositories.check_store import CheckStore
    from uptimer.streams.base import DurableStream

logger = get_logger(__name__)

# Errors that mean no response was obtained from the endpoint
PROBE_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckWorker:
    """Consumes check jobs for one region and emits check results.

    Attributes:
        region_id: Store id of the worker's region
        group: Consumer group on the job stream (the region name)
        worker_id: Consumer name within the group
        batch_size: Maximum jobs read per iteration
        block_ms: Maximum wait for new jobs per read
        timeout: Timeout for each probe, in seconds
    """

    def __init__(
        self,
        stream: DurableStream,
        settings: Settings,
        *,
        region_id: int,
        region_name: str,
        worker_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
        timer: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.stream = stream
        self.region_id = region_id
        self.group = region_name
        self.worker_id = worker_id
        self.job_stream = settings.job_stream
        self.result_stream = settings.result_stream
        self.group_start_id = settings.job_group_start_id
        self.batch_size = settings.worker_batch_size
        self.block_ms = settings.worker_block_ms
        self.timeout = settings.probe_timeout_seconds
        self.ack_malformed = settings.ack_malformed_jobs
        self.http_client = http_client
        self._timer = timer
        self._now = now
        self.loop = RunLoop(
            f"worker:{region_name}:{worker_id}",
            self.process_batch,
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
    ) -> CheckWorker:
        """Build a worker from the process configuration.

        Resolves the region once for the process lifetime and makes sure the
        region's consumer group exists.

        Raises:
            ConfigurationError: If the identity is missing or the region
                name is not provisioned.
        """
        region_name, worker_id = settings.require_worker_identity()
        region_id = await asyncio.to_thread(store.resolve_region_id, region_name)
        worker = cls(
            stream,
            settings,
            region_id=region_id,
            region_name=region_name,
            worker_id=worker_id,
            **kwargs,
        )
        await stream.ensure_group(
            worker.job_stream, worker.group, worker.group_start_id
        )
        return worker

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout),
            )
        return self.http_client

    async def _request(self, url: str) -> int:
        """Send the request and return the status code without reading the body."""
        async with self._client().stream("GET", url, timeout=self.timeout) as response:
            return response.status_code

    async def probe(self, job: CheckJob, job_id: str) -> CheckResult:
        """Probe one endpoint and classify the outcome.

        Args:
            job: The job to run
            job_id: Stream id of the job entry

        Returns:
            The observation, ``up`` or ``down``, with elapsed milliseconds
        """
        observed_at = self._now()
        started = self._timer()
        try:
            status_code = await asyncio.wait_for(
                self._request(job.url), timeout=self.timeout
            )
            status = CheckStatus.UP
            detail = str(status_code)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            status = CheckStatus.DOWN
            detail = "timeout"
        except PROBE_ERRORS as e:
            status = CheckStatus.DOWN
            detail = f"error: {e}"
        elapsed_ms = max(0, round((self._timer() - started) * 1000))

        logger.debug(
            LogEvents.WORKER_PROBE_COMPLETED,
            endpoint_id=job.endpoint_id,
            url=job.url,
            status=status.value,
            response_time_ms=elapsed_ms,
            detail=detail,
        )
        return CheckResult(
            endpoint_id=job.endpoint_id,
            region_id=self.region_id,
            status=status,
            response_time_ms=elapsed_ms,
            observed_at=observed_at,
            job_id=job_id,
        )

    async def _process_job(self, entry_id: str, job: CheckJob) -> Optional[str]:
        """Probe and append the result; return the entry id once appended."""
        result = await self.probe(job, entry_id)
        try:
            await self.stream.append(self.result_stream, result.to_payload())
        except Exception as e:
            logger.error(
                LogEvents.WORKER_RESULT_APPEND_FAILED,
                entry_id=entry_id,
                endpoint_id=job.endpoint_id,
                error=str(e),
            )
            return None
        return entry_id

    async def process_batch(self) -> int:
        """Run one read-probe-append-ack iteration.

        Returns:
            The number of job entries acknowledged.
        """
        entries = await self.stream.read_group(
            self.job_stream,
            self.group,
            self.worker_id,
            count=self.batch_size,
            block_ms=self.block_ms,
        )
        if not entries:
            return 0

        tasks = []
        ack_ids: list[str] = []
        for entry in entries:
            parsed = parse_job(entry)
            if isinstance(parsed, Rejected):
                logger.warning(
                    LogEvents.WORKER_JOB_REJECTED,
                    entry_id=parsed.entry_id,
                    reason=parsed.reason,
                    acked=self.ack_malformed,
                )
                if self.ack_malformed:
                    ack_ids.append(parsed.entry_id)
                continue
            tasks.append(self._process_job(entry.id, parsed))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(
                    LogEvents.WORKER_RESULT_APPEND_FAILED,
                    error=str(result),
                    exc_info=result,
                )
            elif result is not None:
                ack_ids.append(result)

        if not ack_ids:
            return 0
        await self.stream.ack_bulk(self.job_stream, self.group, ack_ids)
        logger.info(
            LogEvents.WORKER_BATCH_ACKED,
            received=len(entries),
            acked=len(ack_ids),
        )
        return len(ack_ids)

    async def start(self) -> None:
        """Process batches until stopped."""
        logger.info(
            LogEvents.WORKER_STARTED,
            region=self.group,
            region_id=self.region_id,
            worker_id=self.worker_id,
            timeout=self.timeout,
        )
        try:
            await self.loop.run()
        finally:
            await self.close()

    def stop(self) -> None:
        """Stop after the current batch."""
        self.loop.stop()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None

"""Tests for the result aggregator."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from uptimer.domain.exceptions import StoreError, StreamError
from uptimer.jobs.result_aggregator import AggregatorState, ResultAggregator
from uptimer.repositories.check_store import CheckStore
from uptimer.schemas.checks import CheckResult, CheckStatus

GROUP = "result-aggregators"


def _payload(endpoint_id: int, job_id: str) -> dict[str, str]:
    return CheckResult(
        endpoint_id=endpoint_id,
        region_id=1,
        status=CheckStatus.UP,
        response_time_ms=30,
        observed_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        job_id=job_id,
    ).to_payload()


@pytest.fixture
def fake_store():
    """Store recording every bulk insert."""
    store = MagicMock(spec=CheckStore)
    store.bulk_insert_results.return_value = None
    return store


@pytest_asyncio.fixture
async def aggregator(memory_stream, fake_store, settings, clock):
    """Aggregator with its group created on the result stream."""
    return await ResultAggregator.create(
        memory_stream, fake_store, settings, clock=clock
    )


async def _append_results(stream, settings, count: int, start: int = 0) -> list[str]:
    return await stream.append_bulk(
        settings.result_stream,
        [_payload(1, f"job-{i}") for i in range(start, start + count)],
    )


def _inserted(store) -> list[CheckResult]:
    return [
        result
        for call in store.bulk_insert_results.call_args_list
        for result in call.args[0]
    ]


class TestFlushPolicy:
    """Tests for when the aggregator flushes."""

    @pytest.mark.asyncio
    async def test_full_batch_flushes_immediately(
        self, aggregator, memory_stream, fake_store, settings
    ):
        """Test 50 buffered results flush as one write and are acknowledged."""
        await _append_results(memory_stream, settings, 50)

        flushed = await aggregator.run_once()

        assert flushed == 50
        fake_store.bulk_insert_results.assert_called_once()
        assert len(_inserted(fake_store)) == 50
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 0
        assert aggregator.buffer == []

    @pytest.mark.asyncio
    async def test_partial_batch_waits(
        self, aggregator, memory_stream, fake_store, settings, clock
    ):
        """Test a partial batch is held until the wait expires."""
        await _append_results(memory_stream, settings, 49)
        clock.advance(1.0)

        assert await aggregator.run_once() == 0
        assert len(aggregator.buffer) == 49
        fake_store.bulk_insert_results.assert_not_called()
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 49

    @pytest.mark.asyncio
    async def test_partial_batch_flushes_after_max_wait(
        self, aggregator, memory_stream, fake_store, settings, clock
    ):
        """Test 49 results flush exactly once after more than 2000 ms."""
        await _append_results(memory_stream, settings, 49)
        await aggregator.run_once()
        clock.advance(2.001)

        assert await aggregator.run_once() == 49
        assert await aggregator.run_once() == 0
        fake_store.bulk_insert_results.assert_called_once()
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 0

    @pytest.mark.asyncio
    async def test_reads_no_more_than_batch_size(
        self, aggregator, memory_stream, fake_store, settings
    ):
        """Test a flush never carries more than one batch."""
        await _append_results(memory_stream, settings, 120)

        assert await aggregator.run_once() == 50
        assert await aggregator.run_once() == 50
        assert len(fake_store.bulk_insert_results.call_args_list[0].args[0]) == 50

    @pytest.mark.asyncio
    async def test_empty_buffer_never_flushes(self, aggregator, fake_store, clock):
        """Test an idle aggregator does not write empty batches."""
        clock.advance(60)

        assert await aggregator.run_once() == 0
        fake_store.bulk_insert_results.assert_not_called()

    def test_should_flush(self, memory_stream, fake_store, settings, clock):
        """Test the size and age thresholds."""
        aggregator = ResultAggregator(
            memory_stream, fake_store, settings, consumer="c", clock=clock
        )
        aggregator.buffer = [("1-0", None)]

        assert not aggregator.should_flush()
        clock.advance(2.0)
        assert not aggregator.should_flush()
        clock.advance(0.01)
        assert aggregator.should_flush()


class TestFlushFailures:
    """Tests for store and stream failures during a flush."""

    @pytest.mark.asyncio
    async def test_store_failure_keeps_buffer_and_acks_nothing(
        self, aggregator, memory_stream, fake_store, settings
    ):
        """Test a failed write leaves entries buffered and pending."""
        fake_store.bulk_insert_results.side_effect = StoreError(
            "bulk_insert_results", "database is locked"
        )
        await _append_results(memory_stream, settings, 50)

        with pytest.raises(StoreError):
            await aggregator.run_once()

        assert len(aggregator.buffer) == 50
        assert aggregator.state == AggregatorState.WAITING
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 50

    @pytest.mark.asyncio
    async def test_failed_batch_retried_whole(
        self, aggregator, memory_stream, fake_store, settings
    ):
        """Test the retried flush writes the same results again."""
        fake_store.bulk_insert_results.side_effect = [
            StoreError("bulk_insert_results", "timeout"),
            None,
        ]
        await _append_results(memory_stream, settings, 50)

        with pytest.raises(StoreError):
            await aggregator.run_once()
        assert await aggregator.run_once() == 50

        first, second = fake_store.bulk_insert_results.call_args_list
        assert first.args[0] == second.args[0]
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 0

    @pytest.mark.asyncio
    async def test_unexpected_store_exception_is_store_error(
        self, aggregator, memory_stream, fake_store, settings
    ):
        """Test arbitrary store exceptions are reported as StoreError."""
        fake_store.bulk_insert_results.side_effect = RuntimeError("driver bug")
        await _append_results(memory_stream, settings, 50)

        with pytest.raises(StoreError):
            await aggregator.run_once()

    @pytest.mark.asyncio
    async def test_ack_follows_persist(self, fake_store, settings, clock):
        """Test nothing is acknowledged before the store write returns."""
        calls = []
        stream = MagicMock()
        stream.ack_bulk = AsyncMock(side_effect=lambda *a: calls.append("ack"))
        fake_store.bulk_insert_results.side_effect = lambda r: calls.append("insert")
        aggregator = ResultAggregator(
            stream, fake_store, settings, consumer="c", clock=clock
        )
        aggregator.buffer = [
            ("1-0", CheckResult.model_validate(_payload(1, "job-1")))
        ]

        await aggregator.flush()

        assert calls == ["insert", "ack"]

    @pytest.mark.asyncio
    async def test_failed_ack_retried_on_next_flush(self, fake_store, settings, clock):
        """Test persisted entries whose ack failed are acknowledged later."""
        stream = MagicMock()
        stream.ack_bulk = AsyncMock(
            side_effect=[StreamError("ack", "results", "down"), 2]
        )
        aggregator = ResultAggregator(
            stream, fake_store, settings, consumer="c", clock=clock
        )
        aggregator.buffer = [("1-0", CheckResult.model_validate(_payload(1, "a")))]
        await aggregator.flush()

        assert aggregator.unacked == ["1-0"]
        assert aggregator.buffer == []

        aggregator.buffer = [("2-0", CheckResult.model_validate(_payload(1, "b")))]
        await aggregator.flush()

        stream.ack_bulk.assert_awaited_with(settings.result_stream, GROUP, ["1-0", "2-0"])
        assert aggregator.unacked == []

    @pytest.mark.asyncio
    async def test_failed_ack_retried_when_idle(self, fake_store, settings, clock):
        """Test leftover acks are sent even when no new results arrive."""
        stream = MagicMock()
        stream.read_group = AsyncMock(return_value=[])
        stream.ack_bulk = AsyncMock(
            side_effect=[StreamError("ack", "results", "down"), 1]
        )
        aggregator = ResultAggregator(
            stream, fake_store, settings, consumer="c", clock=clock
        )
        aggregator.buffer = [("1-0", CheckResult.model_validate(_payload(1, "a")))]
        await aggregator.flush()
        assert aggregator.unacked == ["1-0"]

        assert await aggregator.run_once() == 0

        stream.ack_bulk.assert_awaited_with(settings.result_stream, GROUP, ["1-0"])
        assert stream.ack_bulk.await_count == 2
        assert aggregator.unacked == []
        fake_store.bulk_insert_results.assert_called_once()


class TestMalformedResults:
    """Tests for malformed result entries."""

    @pytest.mark.asyncio
    async def test_rejected_results_acked_not_persisted(
        self, aggregator, memory_stream, fake_store, settings, clock
    ):
        """Test malformed results are dropped and acknowledged."""
        await _append_results(memory_stream, settings, 2)
        await memory_stream.append(settings.result_stream, {"status": "maybe"})
        clock.advance(5)

        assert await aggregator.run_once() == 3

        assert len(_inserted(fake_store)) == 2
        assert await memory_stream.pending_count(settings.result_stream, GROUP) == 0

    @pytest.mark.asyncio
    async def test_only_rejected_skips_store(
        self, aggregator, memory_stream, fake_store, settings, clock
    ):
        """Test a batch with no valid results does not call the store."""
        await memory_stream.append(settings.result_stream, {"status": "maybe"})
        clock.advance(5)

        assert await aggregator.run_once() == 1
        fake_store.bulk_insert_results.assert_not_called()


class TestCreate:
    """Tests for ResultAggregator.create."""

    @pytest.mark.asyncio
    async def test_group_reads_existing_results(self, memory_stream, fake_store, settings):
        """Test the group starts at the beginning of the result stream."""
        await _append_results(memory_stream, settings, 3)

        aggregator = await ResultAggregator.create(memory_stream, fake_store, settings)

        assert aggregator.consumer == "worker-1"
        assert await aggregator.read() == 3

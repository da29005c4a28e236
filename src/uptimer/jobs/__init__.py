"""Background jobs module for uptimer.

Each job is a long-running loop meant to run in its own process:

Jobs:
- producer: Periodic scan that enqueues one check job per endpoint
- check_worker: Regional worker that probes endpoints and emits results
- result_aggregator: Batches results into idempotent store writes
"""

from uptimer.jobs.check_worker import CheckWorker
from uptimer.jobs.producer import Producer
from uptimer.jobs.result_aggregator import AggregatorState, ResultAggregator

__all__ = ["AggregatorState", "CheckWorker", "Producer", "ResultAggregator"]

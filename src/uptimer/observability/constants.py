"""Constants for observability layer."""

# Service identifier for logs
SERVICE_NAME = "uptimer"


# Log event names following the pattern: {domain}.{action}.{result}
class LogEvents:
    """Standardized log event names."""

    # Stream events
    STREAM_GROUP_CREATED = "stream.group.created"
    STREAM_GROUP_EXISTS = "stream.group.exists"

    # Producer events
    PRODUCER_STARTED = "producer.started"
    PRODUCER_CYCLE_COMPLETED = "producer.cycle.completed"
    PRODUCER_ENDPOINT_SKIPPED = "producer.endpoint.skipped"
    PRODUCER_ENQUEUE_FAILED = "producer.enqueue.failed"

    # Worker events
    WORKER_STARTED = "worker.started"
    WORKER_JOB_REJECTED = "worker.job.rejected"
    WORKER_PROBE_COMPLETED = "worker.probe.completed"
    WORKER_RESULT_APPEND_FAILED = "worker.result.append_failed"
    WORKER_BATCH_ACKED = "worker.batch.acked"

    # Aggregator events
    AGGREGATOR_STARTED = "aggregator.started"
    AGGREGATOR_RESULT_REJECTED = "aggregator.result.rejected"
    AGGREGATOR_FLUSH_COMPLETED = "aggregator.flush.completed"
    AGGREGATOR_FLUSH_FAILED = "aggregator.flush.failed"
    AGGREGATOR_ACK_FAILED = "aggregator.ack.failed"

    # Store events
    STORE_RESULT_ORPHAN_DROPPED = "store.result.orphan_dropped"
    STORE_RESULT_ROW_SKIPPED = "store.result.row_skipped"

    # Run loop events
    LOOP_STARTED = "loop.started"
    LOOP_ITERATION_FAILED = "loop.iteration.failed"
    LOOP_CANCELLED = "loop.cancelled"
    LOOP_STOPPED = "loop.stopped"

    # Startup events
    STARTUP_FAILED = "startup.failed"

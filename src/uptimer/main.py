"""Main entry point for the uptimer processes.

Every pipeline component runs as its own process:

    uptimer producer      # periodic scan, enqueues check jobs
    uptimer worker        # regional probe worker (REGION_NAME, WORKER_ID)
    uptimer aggregator    # batches results into the store (WORKER_ID)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, Optional

import typer

from uptimer import __version__
from uptimer.core.config import Settings, get_settings
from uptimer.core.redis_client import RedisConnection
from uptimer.database.connection import DatabaseManager
from uptimer.domain.exceptions import ConfigurationError, DomainException, StreamError
from uptimer.jobs import CheckWorker, Producer, ResultAggregator
from uptimer.observability import configure_logging, get_logger
from uptimer.observability.constants import LogEvents
from uptimer.output import print_error, print_stream_table, print_success
from uptimer.repositories.check_store import DEFAULT_REGIONS, SqlCheckStore
from uptimer.streams.redis_stream import RedisStream

logger = get_logger(__name__)

app = typer.Typer(
    name="uptimer",
    help="Multi-region uptime checks over durable Redis streams.",
    no_args_is_help=True,
)


class Resources:
    """Process-scoped handles, created once and passed to every component."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.redis = RedisConnection(settings.redis_url)
        self.db = DatabaseManager(settings.database_url, echo=settings.database_echo)
        self.stream = RedisStream(self.redis, max_length=settings.stream_max_length)
        self.store = SqlCheckStore(self.db)

    async def close(self) -> None:
        await self.redis.close()
        self.db.dispose()


def _bootstrap() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return settings


def _startup_failed(e: DomainException) -> typer.Exit:
    logger.critical(LogEvents.STARTUP_FAILED, error=e.message, code=e.error_code)
    print_error(e.message)
    return typer.Exit(code=1)


def _run(
    settings: Settings, main: Callable[[Resources], Awaitable[None]]
) -> None:
    """Run an async entry point, exiting with code 1 on domain errors."""

    async def runner() -> None:
        resources = Resources(settings)
        try:
            await main(resources)
        finally:
            await resources.close()

    try:
        asyncio.run(runner())
    except DomainException as e:
        raise _startup_failed(e) from e
    except KeyboardInterrupt:
        pass


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"uptimer version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    _version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """uptimer - distributed endpoint uptime checks."""


@app.command("producer")
def producer_cmd() -> None:
    """Enqueue one check job per endpoint every interval."""
    settings = _bootstrap()

    async def run(resources: Resources) -> None:
        await Producer(resources.stream, resources.store, settings).start()

    _run(settings, run)


@app.command("worker")
def worker_cmd() -> None:
    """Probe endpoints for this process's region."""
    settings = _bootstrap()

    async def run(resources: Resources) -> None:
        worker = await CheckWorker.create(resources.stream, resources.store, settings)
        await worker.start()

    # Identity is checked before any connection is made
    try:
        settings.require_worker_identity()
    except ConfigurationError as e:
        raise _startup_failed(e) from e
    _run(settings, run)


@app.command("aggregator")
def aggregator_cmd() -> None:
    """Batch check results from the result stream into the store."""
    settings = _bootstrap()

    async def run(resources: Resources) -> None:
        aggregator = await ResultAggregator.create(
            resources.stream, resources.store, settings
        )
        await aggregator.start()

    try:
        settings.require_consumer_id()
    except ConfigurationError as e:
        raise _startup_failed(e) from e
    _run(settings, run)


@app.command("init-db")
def init_db_cmd() -> None:
    """Create the database tables."""
    settings = _bootstrap()
    db = DatabaseManager(settings.database_url, echo=settings.database_echo)
    try:
        db.create_all_tables()
    finally:
        db.dispose()
    print_success("Database tables created.")


@app.command("seed-regions")
def seed_regions_cmd(
    names: Annotated[
        Optional[list[str]],
        typer.Argument(help="Region names to provision (default: built-in set)."),
    ] = None,
) -> None:
    """Provision probe regions; existing regions are left untouched."""
    settings = _bootstrap()
    db = DatabaseManager(settings.database_url, echo=settings.database_echo)
    try:
        created = SqlCheckStore(db).seed_regions(names or DEFAULT_REGIONS)
    except DomainException as e:
        print_error(e.message)
        raise typer.Exit(code=1) from e
    finally:
        db.dispose()
    print_success(f"Seeded regions: {', '.join(created) if created else 'none new'}")


@app.command("status")
def status_cmd(
    regions: Annotated[
        Optional[list[str]],
        typer.Option("--region", "-r", help="Region groups to report on."),
    ] = None,
) -> None:
    """Show stream depth and pending entries per consumer group."""
    settings = _bootstrap()
    groups = regions or (
        [settings.region_name] if settings.region_name else list(DEFAULT_REGIONS)
    )

    async def pending_or_none(
        stream: RedisStream, name: str, group: str
    ) -> Optional[int]:
        try:
            return await stream.pending_count(name, group)
        except StreamError:
            return None

    async def run(resources: Resources) -> None:
        if not await resources.redis.check_health():
            raise StreamError("ping", settings.redis_url, "Redis is not reachable")
        stream = resources.stream
        job_length = await stream.length(settings.job_stream)
        result_length = await stream.length(settings.result_stream)
        rows = [
            (
                settings.job_stream,
                group,
                job_length,
                await pending_or_none(stream, settings.job_stream, group),
            )
            for group in groups
        ]
        rows.append(
            (
                settings.result_stream,
                settings.aggregator_group,
                result_length,
                await pending_or_none(
                    stream, settings.result_stream, settings.aggregator_group
                ),
            )
        )
        print_stream_table(rows)

    _run(settings, run)


if __name__ == "__main__":
    app()

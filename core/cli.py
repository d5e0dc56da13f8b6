"""Click CLI entry point for RepoWatch."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import click
import structlog
import uvicorn
from redis.asyncio import Redis

from api.config import Settings, get_settings
from core.indexing.cache import CursorCache
from core.indexing.consumer import JobConsumer
from core.indexing.monitor import RepositoryMonitor, RepositoryNotFoundError
from core.indexing.queue import CommitQueue, ResultChannel
from core.indexing.worker import CommitIndexingWorker, PersistJobHandler
from core.logging import configure_logging
from core.storage.database import Database
from core.storage.store import SQLIndexStore
from integrations.github.client import GitHubClient

logger = structlog.get_logger(__name__)


@dataclass
class Runtime:
    """Connected services shared by the commands."""

    settings: Settings
    database: Database
    store: SQLIndexStore
    redis: Redis
    client: GitHubClient
    fetch_queue: CommitQueue
    persist_queue: CommitQueue
    results: ResultChannel
    cache: CursorCache

    def monitor(self) -> RepositoryMonitor:
        return RepositoryMonitor(
            store=self.store,
            client=self.client,
            fetch_queue=self.fetch_queue,
            persist_queue=self.persist_queue,
            results=self.results,
            config=self.settings.monitor_config(),
            cache=self.cache,
        )


@asynccontextmanager
async def _runtime(settings: Settings) -> AsyncIterator[Runtime]:
    database = Database(settings.database_url, echo=settings.database_echo)
    await database.connect()
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    client = GitHubClient(settings.github_config())
    try:
        await database.create_schema()
        yield Runtime(
            settings=settings,
            database=database,
            store=SQLIndexStore(database),
            redis=redis,
            client=client,
            fetch_queue=CommitQueue(redis, settings.fetch_queue_name),
            persist_queue=CommitQueue(redis, settings.persist_queue_name),
            results=ResultChannel(redis, settings.results_key),
            cache=CursorCache(redis, settings.cache_ttl_seconds),
        )
    finally:
        await client.close()
        await redis.aclose()
        await database.close()


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.option("--json-logs/--console-logs", default=None, help="Override LOG_JSON.")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, json_logs: bool | None) -> None:
    """repowatch: keep a local index of GitHub commit history."""
    settings = get_settings()
    configure_logging(
        log_level or settings.log_level,
        json_output=settings.log_json if json_logs is None else json_logs,
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the HTTP API and the repository monitor."""
    uvicorn.run("api.main:app", host=host, port=port, reload=reload, log_config=None)


@main.command()
@click.pass_context
def worker(ctx: click.Context) -> None:
    """Consume persist jobs until interrupted."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with _runtime(settings) as rt:
            indexing_worker = CommitIndexingWorker(rt.store, rt.cache)
            consumer = JobConsumer(
                rt.persist_queue,
                PersistJobHandler(indexing_worker, rt.results),
                poll_timeout=settings.queue_poll_timeout,
                job_timeout=settings.worker_job_timeout,
            )
            await consumer.run()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("\nInterrupted. Shutting down...", err=True)


@main.command()
@click.pass_context
def sweep(ctx: click.Context) -> None:
    """Run one sweep over all tracked repositories, then exit."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with _runtime(settings) as rt:
            report = await rt.monitor().sweep()
        click.echo(
            f"Swept {report.repositories} repositories: "
            f"{report.succeeded} succeeded, {report.failed} failed ({report.duration_ms} ms)"
        )
        for failure in report.failures:
            click.echo(f"  {failure.org_name}/{failure.repo_name}: {failure.message}", err=True)

    asyncio.run(_run())


@main.command()
@click.argument("org_name")
@click.argument("repo_name")
@click.pass_context
def register(ctx: click.Context, org_name: str, repo_name: str) -> None:
    """Register ORG_NAME/REPO_NAME and queue its first fetch."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with _runtime(settings) as rt:
            repository = await rt.monitor().register_repository(org_name, repo_name)
        click.echo(f"Registered {repository.full_name}")

    try:
        asyncio.run(_run())
    except RepositoryNotFoundError as e:
        raise click.ClickException(str(e)) from e


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with Database(settings.database_url) as database:
            await database.create_schema()

    asyncio.run(_run())
    click.echo("Database schema ready")

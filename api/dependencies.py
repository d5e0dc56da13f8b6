"""Dependency injection setup for the RepoWatch API.

This module provides FastAPI dependency functions for injecting
services and resources into route handlers.
"""

import asyncio
from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import Depends
from redis.asyncio import Redis

from core.indexing.cache import CursorCache
from core.indexing.consumer import JobConsumer
from core.indexing.jobs import PersistCommitsJob
from core.indexing.monitor import RepositoryMonitor
from core.indexing.queue import CommitQueue, ResultChannel
from core.indexing.worker import CommitIndexingWorker, PersistJobHandler
from core.storage.database import Database
from core.storage.store import IndexStore, SQLIndexStore
from integrations.github.client import GitHubClient
from integrations.github.models import GitHubCommit
from integrations.github.webhooks import WebhookProcessor

from .config import Settings, get_settings

logger = structlog.get_logger(__name__)

# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]


# Global instances for connection management
_database: Database | None = None
_redis: Redis | None = None
_store: IndexStore | None = None
_github_client: GitHubClient | None = None
_persist_queue: CommitQueue | None = None
_monitor: RepositoryMonitor | None = None
_webhook_processor: WebhookProcessor | None = None
_worker_consumer: JobConsumer | None = None
_worker_task: asyncio.Task[None] | None = None


async def init_dependencies(settings: Settings) -> None:
    """Initialize global dependencies on application startup.

    Connects the database and Redis, wires the indexing pipeline, and
    starts the repository monitor (and the embedded worker if enabled).

    Args:
        settings: Application settings instance.
    """
    global _database, _redis, _store, _github_client, _persist_queue
    global _monitor, _webhook_processor, _worker_consumer, _worker_task

    # Relational store
    _database = Database(settings.database_url, echo=settings.database_echo)
    await _database.connect()
    await _database.create_schema()
    _store = SQLIndexStore(_database)

    # Redis queues and cache
    _redis = Redis.from_url(settings.redis_url, decode_responses=True)
    fetch_queue = CommitQueue(_redis, settings.fetch_queue_name)
    _persist_queue = CommitQueue(_redis, settings.persist_queue_name)
    results = ResultChannel(_redis, settings.results_key)

    _github_client = GitHubClient(settings.github_config())

    cache = CursorCache(_redis, settings.cache_ttl_seconds)
    _monitor = RepositoryMonitor(
        store=_store,
        client=_github_client,
        fetch_queue=fetch_queue,
        persist_queue=_persist_queue,
        results=results,
        config=settings.monitor_config(),
        cache=cache,
    )

    _webhook_processor = WebhookProcessor()
    _webhook_processor.register_defaults(_enqueue_pushed_commits)

    if settings.embedded_worker:
        worker = CommitIndexingWorker(_store, cache)
        _worker_consumer = JobConsumer(
            _persist_queue,
            PersistJobHandler(worker, results),
            poll_timeout=settings.queue_poll_timeout,
            job_timeout=settings.worker_job_timeout,
        )
        _worker_task = asyncio.create_task(_worker_consumer.run(), name="embedded-worker")
        logger.info("embedded_worker_started", queue=settings.persist_queue_name)

    if settings.start_monitor:
        await _monitor.start()


async def shutdown_dependencies() -> None:
    """Cleanup dependencies on application shutdown.

    Stops background tasks, then closes connections and releases resources.
    """
    global _database, _redis, _store, _github_client, _persist_queue
    global _monitor, _webhook_processor, _worker_consumer, _worker_task

    if _monitor is not None:
        await _monitor.stop()
        _monitor = None

    if _worker_task is not None:
        if _worker_consumer is not None:
            _worker_consumer.stop()
        _worker_task.cancel()
        await asyncio.gather(_worker_task, return_exceptions=True)
        _worker_task = None
        _worker_consumer = None

    if _github_client is not None:
        await _github_client.close()
        _github_client = None

    if _redis is not None:
        await _redis.aclose()
        _redis = None

    if _database is not None:
        await _database.close()
        _database = None

    _store = None
    _persist_queue = None
    _webhook_processor = None


async def _enqueue_pushed_commits(org_name: str, repo_name: str, commits: list[GitHubCommit]) -> None:
    if _persist_queue is None:
        raise RuntimeError("Persist queue not initialized")
    await _persist_queue.enqueue(PersistCommitsJob(org_name=org_name, repo_name=repo_name, commits=commits))


async def get_database() -> AsyncGenerator[Database, None]:
    """Get the relational database.

    Yields:
        The shared Database instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Ensure init_dependencies() was called on startup.")
    yield _database


async def get_redis() -> AsyncGenerator[Redis, None]:
    """Get the Redis client.

    Yields:
        The shared Redis client.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _redis is None:
        raise RuntimeError("Redis not initialized. Ensure init_dependencies() was called on startup.")
    yield _redis


async def get_store() -> AsyncGenerator[IndexStore, None]:
    """Get the index store.

    Yields:
        The shared IndexStore instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _store is None:
        raise RuntimeError("Index store not initialized. Ensure init_dependencies() was called on startup.")
    yield _store


async def get_github_client() -> AsyncGenerator[GitHubClient, None]:
    """Get the GitHub API client.

    Yields:
        The shared GitHubClient instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _github_client is None:
        raise RuntimeError("GitHub client not initialized. Ensure init_dependencies() was called on startup.")
    yield _github_client


async def get_monitor() -> AsyncGenerator[RepositoryMonitor, None]:
    """Get the repository monitor.

    Yields:
        The shared RepositoryMonitor instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _monitor is None:
        raise RuntimeError("Repository monitor not initialized. Ensure init_dependencies() was called on startup.")
    yield _monitor


async def get_webhook_processor() -> AsyncGenerator[WebhookProcessor, None]:
    """Get the webhook processor.

    Yields:
        The shared WebhookProcessor instance.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    if _webhook_processor is None:
        raise RuntimeError("Webhook processor not initialized. Ensure init_dependencies() was called on startup.")
    yield _webhook_processor


# Type aliases for commonly used dependencies
DatabaseDep = Annotated[Database, Depends(get_database)]
RedisDep = Annotated[Redis, Depends(get_redis)]
StoreDep = Annotated[IndexStore, Depends(get_store)]
GitHubClientDep = Annotated[GitHubClient, Depends(get_github_client)]
MonitorDep = Annotated[RepositoryMonitor, Depends(get_monitor)]
WebhookProcessorDep = Annotated[WebhookProcessor, Depends(get_webhook_processor)]

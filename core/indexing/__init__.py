"""Incremental commit indexing.

This module provides the pieces that keep the commit index in sync with
GitHub: the Redis work queue and its consumer, the cursor cache, the
commit indexing worker, and the repository monitor that schedules sweeps.

Example:
    >>> from core.indexing import RepositoryMonitor, MonitorConfig
    >>> monitor = RepositoryMonitor(store, client, fetch_queue, persist_queue)
    >>> await monitor.register_repository("chromium", "chromium")
    >>> report = await monitor.sweep()
    >>> print(f"{report.succeeded}/{report.repositories} repositories indexed")
"""

from .cache import CursorCache, cursor_key
from .consumer import JobConsumer, JobHandler
from .jobs import (
    FetchCommitsJob,
    IndexJob,
    PersistCommitsJob,
    WorkerResult,
    WorkerStatus,
    parse_job,
)
from .models import IndexOutcome, MonitorConfig, PipelineStatus, RepositoryFailure, SweepReport
from .monitor import (
    RepositoryMonitor,
    RepositoryNotFoundError,
    RepositoryNotTrackedError,
    RepoWatchError,
)
from .queue import CommitQueue, Reservation, ResultChannel
from .worker import CommitIndexingWorker, PersistJobHandler

__all__ = [
    # Queue
    "CommitQueue",
    "Reservation",
    "ResultChannel",
    "JobConsumer",
    "JobHandler",
    # Jobs
    "FetchCommitsJob",
    "PersistCommitsJob",
    "IndexJob",
    "parse_job",
    "WorkerResult",
    "WorkerStatus",
    # Cache
    "CursorCache",
    "cursor_key",
    # Worker
    "CommitIndexingWorker",
    "PersistJobHandler",
    # Monitor
    "RepositoryMonitor",
    "MonitorConfig",
    "IndexOutcome",
    "RepositoryFailure",
    "SweepReport",
    "PipelineStatus",
    # Errors
    "RepoWatchError",
    "RepositoryNotFoundError",
    "RepositoryNotTrackedError",
]

"""Repository monitor: registration, fetch cycles and the recurring sweep.

The monitor decides what to index and hands the actual persistence to the
worker through the persist queue. It never waits for the worker; the
terminal results the worker publishes are only logged.
"""

import asyncio
import secrets
import time

import structlog

from core.storage.models import Repository
from core.storage.store import IndexStore
from integrations.github.client import GitHubClient
from integrations.github.models import GitHubCommit

from .cache import CursorCache, cursor_key
from .consumer import JobConsumer
from .jobs import FetchCommitsJob, PersistCommitsJob, WorkerStatus
from .models import IndexOutcome, MonitorConfig, PipelineStatus, RepositoryFailure, SweepReport
from .queue import CommitQueue, ResultChannel

logger = structlog.get_logger(__name__)


class RepoWatchError(Exception):
    """Base class for RepoWatch domain errors."""

    pass


class RepositoryNotFoundError(RepoWatchError):
    """GitHub reports that the repository does not exist."""

    def __init__(self, org_name: str, repo_name: str) -> None:
        super().__init__(f"Repository {org_name}/{repo_name} does not exist")
        self.org_name = org_name
        self.repo_name = repo_name


class RepositoryNotTrackedError(RepoWatchError):
    """The repository has not been registered."""

    def __init__(self, org_name: str, repo_name: str) -> None:
        super().__init__(f"Repository {org_name}/{repo_name} is not tracked")
        self.org_name = org_name
        self.repo_name = repo_name


def _newest_date(commits: list[GitHubCommit], since: str | None) -> str | None:
    # never earlier than the current boundary
    dates = [c.commit_date for c in commits if c.commit_date]
    if since:
        dates.append(since)
    return max(dates) if dates else None


class RepositoryMonitor:
    """Orchestrates incremental indexing of tracked repositories.

    Nothing runs on construction. ``start`` seeds the configured repository,
    arms the recurring sweep and starts the fetch-job consumer; ``stop``
    cancels all of it.

    Attributes:
        config: Monitor configuration.
        store: Durable store.
        client: GitHub API client.
        fetch_queue: Queue of fetch-phase jobs, consumed here.
        persist_queue: Queue of persist-phase jobs, consumed by the worker.
        results: Channel the worker publishes terminal results on.
        cache: Cursor cache shared with the worker, cleared on registration.
    """

    def __init__(
        self,
        store: IndexStore,
        client: GitHubClient,
        fetch_queue: CommitQueue,
        persist_queue: CommitQueue,
        results: ResultChannel | None = None,
        config: MonitorConfig | None = None,
        cache: CursorCache | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self.store = store
        self.client = client
        self.fetch_queue = fetch_queue
        self.persist_queue = persist_queue
        self.results = results
        self.cache = cache
        self._logger = logger.bind(component="repository_monitor")

        self._timer_task: asyncio.Task[None] | None = None
        self._consumer: JobConsumer | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._results_task: asyncio.Task[None] | None = None
        self._sweeps: set[asyncio.Task[None]] = set()

    # ==========================================================================
    # Registration
    # ==========================================================================

    async def register_repository(self, org_name: str, repo_name: str) -> Repository:
        """Register (or refresh) a repository and queue its first fetch.

        Args:
            org_name: Organization name.
            repo_name: Repository name.

        Returns:
            The stored repository, with its cursor reset.

        Raises:
            RepositoryNotFoundError: If GitHub reports the repository does not
                exist; nothing is written in that case.
        """
        metadata = await self.client.get_repository(org_name, repo_name)
        if metadata is None:
            raise RepositoryNotFoundError(org_name, repo_name)

        repository = await self.store.save_registration(
            org_name,
            repo_name,
            metadata,
            secret=secrets.token_hex(20),
        )
        if self.cache is not None:
            # the cursor was reset, so the cached fast-path cursor is stale
            await self.cache.delete(cursor_key(org_name, repo_name))
        await self.fetch_queue.enqueue(
            FetchCommitsJob(
                org_name=org_name,
                repo_name=repo_name,
                since_commit_url=repository.last_commit_url,
            )
        )

        self._logger.info("repository_registered", org=org_name, repo=repo_name)
        return repository

    async def request_sync(self, org_name: str, repo_name: str) -> Repository:
        """Queue a fetch for an already tracked repository.

        Raises:
            RepositoryNotTrackedError: If the repository is not registered.
        """
        repository = await self.store.get_repository(org_name, repo_name)
        if repository is None:
            raise RepositoryNotTrackedError(org_name, repo_name)

        await self.fetch_queue.enqueue(
            FetchCommitsJob(
                org_name=org_name,
                repo_name=repo_name,
                since_commit_url=repository.last_commit_url,
            )
        )
        return repository

    # ==========================================================================
    # Fetch cycles
    # ==========================================================================

    async def index_repository(self, repository: Repository) -> IndexOutcome:
        """Fetch new commits of one repository and dispatch them.

        Each cycle fetches everything since the stored boundary date. Commits
        are new by identity: not the cursor, not dispatched earlier in this
        run, and not already stored. New commits are queued for the worker
        and the cursor moves to the last fetched commit; a cycle with nothing
        new marks the repository complete and ends the loop. Dates only
        narrow the fetch, since GitHub returns rebased commits and same-second
        siblings regardless of their author date.

        Args:
            repository: Snapshot of the repository to index.

        Returns:
            IndexOutcome describing what happened.
        """
        org, repo = repository.org_name, repository.repo_name
        cursor = repository.last_commit_url
        since = repository.last_commit_date
        outcome = IndexOutcome(org_name=org, repo_name=repo, cursor=cursor)
        seen: set[str] = {cursor} if cursor else set()

        for _ in range(self.config.max_cycles_per_repository):
            outcome.cycles += 1
            page = await self.client.get_commits(org, repo, since=since, per_page=self.config.per_page)
            outcome.fetched += page.total_records

            candidates = [c for c in page.commits if c.commit_url not in seen]
            stored = await self.store.existing_commit_urls(
                repository.id, [c.commit_url for c in candidates]
            )
            fresh = [c for c in candidates if c.commit_url not in stored]
            seen.update(c.commit_url for c in page.commits)

            if not fresh:
                await self.store.set_indexing_complete(org, repo, True)
                outcome.complete = True
                break

            await self.persist_queue.enqueue(
                PersistCommitsJob(org_name=org, repo_name=repo, commits=fresh)
            )
            outcome.dispatched += len(fresh)

            new_cursor = page.commits[-1].commit_url
            new_since = _newest_date(page.commits, since)
            advanced = await self.store.advance_cursor(org, repo, cursor, new_cursor, new_since)
            if not advanced:
                # an overlapping sweep moved the cursor first
                self._logger.info("cursor_moved_concurrently", org=org, repo=repo, expected=cursor)
                break

            cursor, since = new_cursor, new_since
            outcome.cursor = cursor

        self._logger.info(
            "repository_indexed",
            org=org,
            repo=repo,
            cycles=outcome.cycles,
            fetched=outcome.fetched,
            dispatched=outcome.dispatched,
            complete=outcome.complete,
        )
        return outcome

    async def handle_fetch_job(self, job: FetchCommitsJob | PersistCommitsJob) -> None:
        """Run a queued fetch job."""
        if not isinstance(job, FetchCommitsJob):
            self._logger.warning("unexpected_job_kind", kind=job.kind, org=job.org_name, repo=job.repo_name)
            return

        repository = await self.store.get_repository(job.org_name, job.repo_name)
        if repository is None:
            self._logger.warning("fetch_job_for_unknown_repository", org=job.org_name, repo=job.repo_name)
            return
        await self.index_repository(repository)

    # ==========================================================================
    # Sweep
    # ==========================================================================

    async def _index_bounded(self, repository: Repository) -> IndexOutcome:
        if self.config.repository_timeout:
            return await asyncio.wait_for(
                self.index_repository(repository),
                timeout=self.config.repository_timeout,
            )
        return await self.index_repository(repository)

    async def sweep(self) -> SweepReport:
        """Index every tracked repository once.

        Repositories are loaded in batches; a batch is processed concurrently
        and awaited as a whole before the next one is loaded. A failing
        repository is recorded and logged without affecting the others.

        Returns:
            SweepReport for the sweep.
        """
        start_time = time.time()
        report = SweepReport()
        batch_size = self.config.sweep_batch_size
        offset = 0

        self._logger.info("sweep_started")

        while True:
            batch = await self.store.list_repositories(offset=offset, limit=batch_size)
            if not batch:
                break

            results = await asyncio.gather(
                *(self._index_bounded(repository) for repository in batch),
                return_exceptions=True,
            )

            for repository, result in zip(batch, results, strict=True):
                report.repositories += 1
                if isinstance(result, Exception):
                    report.failures.append(
                        RepositoryFailure(
                            org_name=repository.org_name,
                            repo_name=repository.repo_name,
                            error_type=type(result).__name__,
                            message=str(result),
                        )
                    )
                    self._logger.warning(
                        "repository_index_failed",
                        org=repository.org_name,
                        repo=repository.repo_name,
                        error=str(result),
                    )
                elif isinstance(result, BaseException):
                    raise result
                else:
                    report.succeeded += 1

            offset += batch_size

        report.duration_ms = int((time.time() - start_time) * 1000)
        self._logger.info(
            "sweep_completed",
            repositories=report.repositories,
            succeeded=report.succeeded,
            failed=report.failed,
            duration_ms=report.duration_ms,
        )
        return report

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @property
    def running(self) -> bool:
        """Whether the recurring sweep is armed."""
        return self._timer_task is not None and not self._timer_task.done()

    async def status(self) -> PipelineStatus:
        """Report whether the monitor runs and how much work is queued."""
        return PipelineStatus(
            running=self.running,
            sweeps_in_flight=len(self._sweeps),
            pending_fetch_jobs=await self.fetch_queue.length(),
            pending_persist_jobs=await self.persist_queue.length(),
        )

    async def start(self) -> None:
        """Seed, then arm the recurring sweep and the queue listeners.

        Raises:
            RepositoryNotFoundError: If the seed repository does not exist.
            RuntimeError: If the monitor is already running.
        """
        if self.running:
            raise RuntimeError("Repository monitor already started")

        if self.config.seed_org and self.config.seed_repo:
            await self.register_repository(self.config.seed_org, self.config.seed_repo)
            self._logger.info("seed_repository_initialized", org=self.config.seed_org, repo=self.config.seed_repo)

        self._consumer = JobConsumer(
            self.fetch_queue,
            self.handle_fetch_job,
            poll_timeout=self.config.poll_timeout,
            job_timeout=self.config.repository_timeout,
        )
        self._consumer_task = asyncio.create_task(self._consumer.run(), name="fetch-consumer")
        if self.results is not None:
            self._results_task = asyncio.create_task(
                self._listen_results(self.results), name="worker-results"
            )
        self._timer_task = asyncio.create_task(self._run_timer(), name="sweep-timer")

        self._logger.info("monitor_started", interval=self.config.sweep_interval_seconds)

    async def stop(self) -> None:
        """Cancel the timer, the listeners and any sweep still running."""
        if self._consumer is not None:
            self._consumer.stop()

        tasks = [t for t in (self._timer_task, self._consumer_task, self._results_task) if t is not None]
        tasks.extend(self._sweeps)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._timer_task = None
        self._consumer = None
        self._consumer_task = None
        self._results_task = None
        self._sweeps.clear()
        self._logger.info("monitor_stopped")

    def launch_sweep(self) -> asyncio.Task[None]:
        """Start a sweep in the background without waiting for it."""
        task = asyncio.create_task(self._logged_sweep(), name="sweep")
        self._sweeps.add(task)
        task.add_done_callback(self._sweeps.discard)
        return task

    async def _run_timer(self) -> None:
        # re-armed on a fixed interval whether or not the last sweep finished
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            self.launch_sweep()

    async def _logged_sweep(self) -> None:
        try:
            await self.sweep()
            self._logger.info("repository_monitoring_completed")
        except Exception as e:
            self._logger.exception("repository_monitoring_failed", error=str(e))

    async def _listen_results(self, results: ResultChannel) -> None:
        while True:
            try:
                result = await results.next(timeout=self.config.poll_timeout)
            except Exception as e:
                self._logger.warning("result_listener_error", error=str(e))
                await asyncio.sleep(self.config.poll_timeout)
                continue
            if result is None:
                continue
            if result.status is WorkerStatus.SUCCESS:
                self._logger.info(
                    "worker_succeeded",
                    org=result.org_name,
                    repo=result.repo_name,
                    persisted=result.persisted,
                )
            else:
                self._logger.error(
                    "worker_failed",
                    org=result.org_name,
                    repo=result.repo_name,
                    error=result.message,
                )

"""Commit indexing worker.

The worker persists a batch of candidate commits for one repository. It is
safe to run any number of times on the same batch: the store's existence
check decides what gets written, the cursor cache only short-circuits work
that is known to be done.
"""

import structlog

from core.storage.store import IndexStore

from .cache import CursorCache, cursor_key
from .jobs import FetchCommitsJob, PersistCommitsJob, WorkerResult, WorkerStatus
from .queue import ResultChannel

logger = structlog.get_logger(__name__)


class CommitIndexingWorker:
    """Deduplicates and persists commit batches.

    Attributes:
        store: Durable store; the authoritative dedup gate.
        cache: Cursor cache; a best-effort fast path.
    """

    def __init__(self, store: IndexStore, cache: CursorCache) -> None:
        """Initialize the worker.

        Args:
            store: Durable store.
            cache: Cursor cache.
        """
        self.store = store
        self.cache = cache
        self._logger = logger.bind(component="commit_worker")

    async def run(self, job: PersistCommitsJob) -> WorkerResult:
        """Persist the new commits of a batch.

        Never raises: any failure is reported as an error result.

        Args:
            job: The batch to persist.

        Returns:
            WorkerResult with status ``success`` or ``error``.
        """
        try:
            return await self._persist(job)
        except Exception as e:
            self._logger.exception(
                "persist_failed",
                org=job.org_name,
                repo=job.repo_name,
                error=str(e),
            )
            return WorkerResult(
                status=WorkerStatus.ERROR,
                org_name=job.org_name,
                repo_name=job.repo_name,
                message=str(e),
            )

    async def _persist(self, job: PersistCommitsJob) -> WorkerResult:
        org, repo = job.org_name, job.repo_name

        repository = await self.store.get_repository(org, repo)
        if repository is None:
            self._logger.error("repository_not_found", org=org, repo=repo)
            return WorkerResult(
                status=WorkerStatus.ERROR,
                org_name=org,
                repo_name=repo,
                message=f"Repository {org}/{repo} not found",
            )

        key = cursor_key(org, repo)
        candidates = job.commits
        last_indexed = await self.cache.get(key)
        if last_indexed:
            # lexicographic comparison is only a proxy for recency
            candidates = [c for c in candidates if c.commit_url > last_indexed]

        persisted = 0
        for commit in candidates:
            if await self.store.commit_exists(repository.id, commit.commit_url):
                continue
            if await self.store.add_commit(repository.id, commit):
                persisted += 1
                await self.cache.set(key, commit.commit_url)

        skipped = len(job.commits) - persisted
        self._logger.info(
            "commits_persisted",
            org=org,
            repo=repo,
            received=len(job.commits),
            persisted=persisted,
            skipped=skipped,
        )
        return WorkerResult(
            status=WorkerStatus.SUCCESS,
            org_name=org,
            repo_name=repo,
            message="Commits processed",
            persisted=persisted,
            skipped=skipped,
        )


class PersistJobHandler:
    """Queue handler that runs the worker and publishes its terminal result."""

    def __init__(self, worker: CommitIndexingWorker, results: ResultChannel | None = None) -> None:
        self.worker = worker
        self.results = results

    async def __call__(self, job: FetchCommitsJob | PersistCommitsJob) -> None:
        if not isinstance(job, PersistCommitsJob):
            logger.warning("unexpected_job_kind", kind=job.kind, org=job.org_name, repo=job.repo_name)
            return

        result = await self.worker.run(job)
        if result.status is WorkerStatus.SUCCESS:
            logger.info("commits_processed", org=result.org_name, repo=result.repo_name, persisted=result.persisted)
        else:
            logger.error("commit_processing_failed", org=result.org_name, repo=result.repo_name, error=result.message)

        if self.results is not None:
            await self.results.publish(result)

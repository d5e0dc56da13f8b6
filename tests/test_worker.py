"""Tests for the commit indexing worker."""

from unittest.mock import AsyncMock

import pytest

from core.indexing.cache import cursor_key
from core.indexing.jobs import FetchCommitsJob, PersistCommitsJob, WorkerResult, WorkerStatus
from core.indexing.worker import CommitIndexingWorker, PersistJobHandler
from core.storage.models import Repository
from core.storage.store import SQLIndexStore
from integrations.github.models import GitHubCommit


def _job(commits: list[GitHubCommit], repo: str = "widgets") -> PersistCommitsJob:
    return PersistCommitsJob(org_name="acme", repo_name=repo, commits=commits)


class TestCommitIndexingWorker:
    """Tests for CommitIndexingWorker."""

    @pytest.mark.asyncio
    async def test_persists_new_commits(
        self,
        store: SQLIndexStore,
        cache,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test every new commit is stored and the cache follows along."""
        worker = CommitIndexingWorker(store, cache)

        result = await worker.run(_job(sample_commits))

        assert result.status is WorkerStatus.SUCCESS
        assert result.persisted == 3
        assert result.skipped == 0
        assert await store.count_commits(registered_repository.id) == 3
        assert cache.values[cursor_key("acme", "widgets")] == sample_commits[-1].commit_url

    @pytest.mark.asyncio
    async def test_same_batch_twice_is_idempotent(
        self,
        store: SQLIndexStore,
        cache,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test a redelivered batch persists nothing the second time."""
        worker = CommitIndexingWorker(store, cache)
        batch = sample_commits[:1]

        first = await worker.run(_job(batch))
        second = await worker.run(_job(batch))

        assert (first.status, first.persisted) == (WorkerStatus.SUCCESS, 1)
        assert (second.status, second.persisted) == (WorkerStatus.SUCCESS, 0)
        assert await store.count_commits(registered_repository.id) == 1

    @pytest.mark.asyncio
    async def test_store_is_the_dedup_gate_without_cache(
        self,
        store: SQLIndexStore,
        cache,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test losing the cache does not create duplicates."""
        worker = CommitIndexingWorker(store, cache)
        await worker.run(_job(sample_commits))
        cache.values.clear()

        result = await worker.run(_job(sample_commits))

        assert result.persisted == 0
        assert result.skipped == 3
        assert await store.count_commits(registered_repository.id) == 3

    @pytest.mark.asyncio
    async def test_cache_filters_by_url_order(
        self,
        store: SQLIndexStore,
        cache,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test candidates not beyond the cached URL are skipped without a lookup."""
        cache.values[cursor_key("acme", "widgets")] = sample_commits[1].commit_url
        worker = CommitIndexingWorker(store, cache)

        result = await worker.run(_job(sample_commits))

        stored = await store.list_commits("acme", "widgets")
        assert [c.commit_url for c in stored] == [sample_commits[0].commit_url]
        assert result.persisted == 1
        assert result.skipped == 2

    @pytest.mark.asyncio
    async def test_unknown_repository_is_an_error(self, store: SQLIndexStore, cache, sample_commits):
        """Test a batch for an unregistered repository is rejected."""
        worker = CommitIndexingWorker(store, cache)

        result = await worker.run(_job(sample_commits, repo="ghost"))

        assert result.status is WorkerStatus.ERROR
        assert result.message == "Repository acme/ghost not found"
        assert await store.list_commits("acme", "ghost") == []

    @pytest.mark.asyncio
    async def test_store_failure_becomes_error_result(self, cache, sample_commits):
        """Test exceptions are reported, never raised."""
        store = AsyncMock()
        store.get_repository.side_effect = RuntimeError("database unavailable")
        worker = CommitIndexingWorker(store, cache)

        result = await worker.run(_job(sample_commits))

        assert result.status is WorkerStatus.ERROR
        assert "database unavailable" in result.message

    @pytest.mark.asyncio
    async def test_empty_batch(self, store: SQLIndexStore, cache, registered_repository: Repository):
        """Test an empty batch succeeds with nothing persisted."""
        result = await CommitIndexingWorker(store, cache).run(_job([]))

        assert result.status is WorkerStatus.SUCCESS
        assert result.persisted == 0


class TestPersistJobHandler:
    """Tests for PersistJobHandler."""

    @pytest.mark.asyncio
    async def test_publishes_result(self, sample_commits):
        """Test the terminal result is published for every persist job."""
        result = WorkerResult(status=WorkerStatus.SUCCESS, org_name="acme", repo_name="widgets", persisted=3)
        worker = AsyncMock()
        worker.run.return_value = result
        results = AsyncMock()

        await PersistJobHandler(worker, results)(_job(sample_commits))

        results.publish.assert_awaited_once_with(result)

    @pytest.mark.asyncio
    async def test_ignores_fetch_jobs(self):
        """Test fetch jobs are not handed to the worker."""
        worker = AsyncMock()
        results = AsyncMock()

        await PersistJobHandler(worker, results)(FetchCommitsJob(org_name="acme", repo_name="widgets"))

        worker.run.assert_not_awaited()
        results.publish.assert_not_awaited()

"""Tests for the Redis work queue, result channel, consumer and cursor cache.

Redis is replaced by an AsyncMock; the tests check which list operations
are issued and how their results are interpreted.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError

from core.indexing.cache import CursorCache, cursor_key
from core.indexing.consumer import JobConsumer
from core.indexing.jobs import (
    FetchCommitsJob,
    PersistCommitsJob,
    WorkerResult,
    WorkerStatus,
    parse_job,
)
from core.indexing.queue import CommitQueue, Reservation, ResultChannel
from integrations.github.models import GitHubCommit

# =============================================================================
# Job Message Tests
# =============================================================================


class TestJobMessages:
    """Tests for the queue wire format."""

    def test_persist_job_wire_format(self, sample_commits: list[GitHubCommit]):
        """Test persist jobs carry camelCase keys and a kind discriminator."""
        job = PersistCommitsJob(org_name="acme", repo_name="widgets", commits=sample_commits[:1])

        parsed = parse_job(job.to_json())

        assert '"orgName":"acme"' in job.to_json()
        assert '"commitUrl"' in job.to_json()
        assert isinstance(parsed, PersistCommitsJob)
        assert parsed.commits[0].commit_url == sample_commits[0].commit_url

    def test_fetch_job_parses_as_fetch(self):
        """Test the discriminator selects the fetch job type."""
        parsed = parse_job('{"kind": "fetch", "orgName": "acme", "repoName": "widgets"}')

        assert isinstance(parsed, FetchCommitsJob)
        assert parsed.since_commit_url == ""

    def test_unknown_kind_is_rejected(self):
        """Test an unknown kind fails validation."""
        with pytest.raises(ValidationError):
            parse_job('{"kind": "delete", "orgName": "acme", "repoName": "widgets"}')

    def test_worker_result_round_trip(self):
        """Test worker results parse back from JSON."""
        result = WorkerResult(status=WorkerStatus.ERROR, org_name="acme", repo_name="widgets", message="boom")

        assert WorkerResult.from_json(result.to_json()) == result


# =============================================================================
# Queue Tests
# =============================================================================


@pytest.fixture
def redis() -> AsyncMock:
    """Mocked async Redis client."""
    return AsyncMock()


class TestCommitQueue:
    """Tests for CommitQueue."""

    @pytest.mark.asyncio
    async def test_enqueue_pushes_json(self, redis: AsyncMock):
        """Test enqueue pushes the serialized job on the pending list."""
        queue = CommitQueue(redis, "q")
        job = FetchCommitsJob(org_name="acme", repo_name="widgets")

        await queue.enqueue(job)

        redis.lpush.assert_awaited_once_with("q:pending", job.to_json())

    @pytest.mark.asyncio
    async def test_reserve_moves_to_processing(self, redis: AsyncMock):
        """Test reserve atomically moves a job into the processing list."""
        job = FetchCommitsJob(org_name="acme", repo_name="widgets")
        redis.blmove.return_value = job.to_json()
        queue = CommitQueue(redis, "q")

        reservation = await queue.reserve(timeout=1)

        assert reservation is not None
        assert reservation.job == job
        redis.blmove.assert_awaited_once_with("q:pending", "q:processing", 1, src="RIGHT", dest="LEFT")

    @pytest.mark.asyncio
    async def test_reserve_timeout(self, redis: AsyncMock):
        """Test reserve returns None when nothing arrives."""
        redis.blmove.return_value = None

        assert await CommitQueue(redis, "q").reserve(timeout=1) is None

    @pytest.mark.asyncio
    async def test_reserve_drops_malformed_messages(self, redis: AsyncMock):
        """Test malformed messages are removed and the next job is returned."""
        job = FetchCommitsJob(org_name="acme", repo_name="widgets")
        redis.blmove.side_effect = ["not json", job.to_json()]
        queue = CommitQueue(redis, "q")

        reservation = await queue.reserve(timeout=1)

        assert reservation is not None
        assert reservation.job == job
        redis.lrem.assert_awaited_once_with("q:processing", 1, "not json")

    @pytest.mark.asyncio
    async def test_ack_removes_from_processing(self, redis: AsyncMock):
        """Test ack removes exactly the reserved payload."""
        queue = CommitQueue(redis, "q")
        job = FetchCommitsJob(org_name="acme", repo_name="widgets")

        await queue.ack(Reservation(job=job, raw=job.to_json()))

        redis.lrem.assert_awaited_once_with("q:processing", 1, job.to_json())

    @pytest.mark.asyncio
    async def test_recover_requeues_in_flight_jobs(self, redis: AsyncMock):
        """Test abandoned jobs are moved back to pending."""
        redis.lmove.side_effect = ["a", "b", None]

        moved = await CommitQueue(redis, "q").recover()

        assert moved == 2
        redis.lmove.assert_awaited_with("q:processing", "q:pending", "RIGHT", "RIGHT")

    @pytest.mark.asyncio
    async def test_length(self, redis: AsyncMock):
        """Test length reads the pending list size."""
        redis.llen.return_value = 7

        assert await CommitQueue(redis, "q").length() == 7
        redis.llen.assert_awaited_once_with("q:pending")


class TestResultChannel:
    """Tests for ResultChannel."""

    @pytest.mark.asyncio
    async def test_publish_is_bounded(self, redis: AsyncMock):
        """Test publishing trims the list to its maximum length."""
        channel = ResultChannel(redis, "results", max_length=10)
        result = WorkerResult(status=WorkerStatus.SUCCESS, org_name="acme", repo_name="widgets", persisted=2)

        await channel.publish(result)

        redis.lpush.assert_awaited_once_with("results", result.to_json())
        redis.ltrim.assert_awaited_once_with("results", 0, 9)

    @pytest.mark.asyncio
    async def test_next_parses_result(self, redis: AsyncMock):
        """Test next returns the popped result."""
        result = WorkerResult(status=WorkerStatus.SUCCESS, org_name="acme", repo_name="widgets")
        redis.brpop.return_value = ("results", result.to_json())

        assert await ResultChannel(redis, "results").next(timeout=1) == result

    @pytest.mark.asyncio
    async def test_next_timeout_and_malformed(self, redis: AsyncMock):
        """Test timeouts and malformed entries yield None."""
        channel = ResultChannel(redis, "results")

        redis.brpop.return_value = None
        assert await channel.next(timeout=1) is None

        redis.brpop.return_value = ("results", "{}")
        assert await channel.next(timeout=1) is None


# =============================================================================
# Consumer Tests
# =============================================================================


class TestJobConsumer:
    """Tests for JobConsumer."""

    @pytest.mark.asyncio
    async def test_failing_job_is_isolated(self):
        """Test a handler error is counted and does not propagate."""
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        consumer = JobConsumer(AsyncMock(name="queue"), handler)

        ok = await consumer.process_one(FetchCommitsJob(org_name="acme", repo_name="widgets"))

        assert ok is False
        assert consumer.failed == 1
        assert consumer.processed == 0

    @pytest.mark.asyncio
    async def test_job_timeout(self):
        """Test a handler exceeding the job timeout is abandoned."""

        async def slow(job):
            await asyncio.sleep(1)

        consumer = JobConsumer(AsyncMock(name="queue"), slow, job_timeout=0.01)

        assert await consumer.process_one(FetchCommitsJob(org_name="acme", repo_name="widgets")) is False
        assert consumer.failed == 1

    @pytest.mark.asyncio
    async def test_run_recovers_processes_and_acks(self):
        """Test the loop recovers, handles each job, and acks even on failure."""
        jobs = [
            FetchCommitsJob(org_name="acme", repo_name="widgets"),
            FetchCommitsJob(org_name="acme", repo_name="gadgets"),
        ]
        reservations = [Reservation(job=j, raw=j.to_json()) for j in jobs]
        queue = AsyncMock()
        queue.name = "q"
        consumer: JobConsumer

        async def reserve(timeout: float):
            if reservations:
                return reservations.pop(0)
            consumer.stop()
            return None

        queue.reserve.side_effect = reserve
        handler = AsyncMock(side_effect=[None, RuntimeError("boom")])
        consumer = JobConsumer(queue, handler, poll_timeout=0.01)

        await consumer.run()

        queue.recover.assert_awaited_once()
        assert handler.await_count == 2
        assert queue.ack.await_count == 2
        assert consumer.processed == 1
        assert consumer.failed == 1

    @pytest.mark.asyncio
    async def test_run_survives_redis_outage(self):
        """Test a Redis error while reserving is logged and the loop keeps consuming."""
        job = FetchCommitsJob(org_name="acme", repo_name="widgets")
        outcomes: list = [RedisConnectionError("connection reset"), Reservation(job=job, raw=job.to_json())]
        queue = AsyncMock()
        queue.name = "q"
        queue.recover.side_effect = RedisConnectionError("connection reset")
        consumer: JobConsumer

        async def reserve(timeout: float):
            if outcomes:
                outcome = outcomes.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
            consumer.stop()
            return None

        queue.reserve.side_effect = reserve
        handler = AsyncMock()
        consumer = JobConsumer(queue, handler, poll_timeout=0.01)

        await asyncio.wait_for(consumer.run(), timeout=1)

        handler.assert_awaited_once_with(job)
        queue.ack.assert_awaited_once()
        assert consumer.processed == 1

    @pytest.mark.asyncio
    async def test_ack_failure_does_not_stop_loop(self):
        """Test a failed acknowledgement leaves the job for recovery and carries on."""
        jobs = [
            FetchCommitsJob(org_name="acme", repo_name="widgets"),
            FetchCommitsJob(org_name="acme", repo_name="gadgets"),
        ]
        reservations = [Reservation(job=j, raw=j.to_json()) for j in jobs]
        queue = AsyncMock()
        queue.name = "q"
        queue.ack.side_effect = [RedisConnectionError("connection reset"), None]
        consumer: JobConsumer

        async def reserve(timeout: float):
            if reservations:
                return reservations.pop(0)
            consumer.stop()
            return None

        queue.reserve.side_effect = reserve
        handler = AsyncMock()
        consumer = JobConsumer(queue, handler, poll_timeout=0.01)

        await consumer.run()

        assert handler.await_count == 2
        assert queue.ack.await_count == 2
        assert consumer.processed == 2


# =============================================================================
# Cache Tests
# =============================================================================


class TestCursorCache:
    """Tests for CursorCache."""

    def test_cursor_key(self):
        """Test the cache key layout."""
        assert cursor_key("acme", "widgets") == "lastIndexedCommit_acme_widgets"

    @pytest.mark.asyncio
    async def test_get_and_set(self, redis: AsyncMock):
        """Test values are read and written with the default expiry."""
        redis.get.return_value = "https://x/c1"
        cache = CursorCache(redis, default_ttl=60)

        assert await cache.get("k") == "https://x/c1"
        await cache.set("k", "https://x/c2")

        redis.set.assert_awaited_once_with("k", "https://x/c2", ex=60)

    @pytest.mark.asyncio
    async def test_set_without_expiry(self, redis: AsyncMock):
        """Test values without expiry are written plainly."""
        await CursorCache(redis).set("k", "v")

        redis.set.assert_awaited_once_with("k", "v")

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self, redis: AsyncMock):
        """Test cache outages degrade to misses."""
        redis.get.side_effect = RedisConnectionError("down")
        redis.set.side_effect = RedisConnectionError("down")
        cache = CursorCache(redis)

        assert await cache.get("k") is None
        await cache.set("k", "v")

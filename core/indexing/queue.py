"""Durable at-least-once work queue on Redis lists.

A job is pushed onto ``<name>:pending``. A consumer reserves it by atomically
moving it to ``<name>:processing`` and acknowledges it by removing it from
there. Anything left in the processing list when a consumer starts (crash,
kill, lost connection) is moved back to pending, so a job can be delivered
more than once but is never silently lost.
"""

from dataclasses import dataclass

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from .jobs import FetchCommitsJob, PersistCommitsJob, WorkerResult, parse_job

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Reservation:
    """A job taken from the queue but not yet acknowledged."""

    job: FetchCommitsJob | PersistCommitsJob
    raw: str


class CommitQueue:
    """Redis-backed job queue.

    Attributes:
        name: Queue name; also the prefix of its Redis keys.
    """

    def __init__(self, redis: Redis, name: str) -> None:
        """Initialize the queue.

        Args:
            redis: Redis client created with ``decode_responses=True``.
            name: Queue name.
        """
        self._redis = redis
        self.name = name
        self.pending_key = f"{name}:pending"
        self.processing_key = f"{name}:processing"
        self._logger = logger.bind(component="commit_queue", queue=name)

    async def enqueue(self, job: FetchCommitsJob | PersistCommitsJob) -> None:
        """Append a job to the queue."""
        await self._redis.lpush(self.pending_key, job.to_json())
        self._logger.debug(
            "job_enqueued",
            kind=job.kind,
            org=job.org_name,
            repo=job.repo_name,
        )

    async def reserve(self, timeout: float = 5.0) -> Reservation | None:
        """Wait for the next job and move it to the processing list.

        Malformed messages are dropped with an error log.

        Args:
            timeout: Seconds to block waiting for a job.

        Returns:
            The reservation, or None if nothing arrived before the timeout.
        """
        while True:
            raw = await self._redis.blmove(
                self.pending_key,
                self.processing_key,
                timeout,
                src="RIGHT",
                dest="LEFT",
            )
            if raw is None:
                return None
            if isinstance(raw, bytes):
                raw = raw.decode()

            try:
                job = parse_job(raw)
            except ValidationError as e:
                self._logger.error("job_malformed", error=str(e), payload=raw[:200])
                await self._redis.lrem(self.processing_key, 1, raw)
                continue

            return Reservation(job=job, raw=raw)

    async def ack(self, reservation: Reservation) -> None:
        """Remove a reserved job from the processing list."""
        await self._redis.lrem(self.processing_key, 1, reservation.raw)

    async def recover(self) -> int:
        """Return abandoned in-flight jobs to the pending list.

        Returns:
            Number of jobs moved back.
        """
        moved = 0
        while await self._redis.lmove(self.processing_key, self.pending_key, "RIGHT", "RIGHT") is not None:
            moved += 1
        if moved:
            self._logger.warning("jobs_recovered", count=moved)
        return moved

    async def length(self) -> int:
        """Number of jobs waiting to be reserved."""
        return int(await self._redis.llen(self.pending_key))


class ResultChannel:
    """Bounded Redis list carrying worker results back to the monitor."""

    def __init__(self, redis: Redis, key: str, max_length: int = 1000) -> None:
        """Initialize the channel.

        Args:
            redis: Redis client created with ``decode_responses=True``.
            key: Redis key of the list.
            max_length: Results kept when nobody is listening.
        """
        self._redis = redis
        self.key = key
        self.max_length = max_length

    async def publish(self, result: WorkerResult) -> None:
        """Publish a worker result."""
        await self._redis.lpush(self.key, result.to_json())
        await self._redis.ltrim(self.key, 0, self.max_length - 1)

    async def next(self, timeout: float = 5.0) -> WorkerResult | None:
        """Wait for the next result.

        Returns:
            The result, or None on timeout or a malformed entry.
        """
        item = await self._redis.brpop([self.key], timeout=timeout)
        if item is None:
            return None
        _, raw = item
        try:
            return WorkerResult.from_json(raw)
        except ValidationError as e:
            logger.error("result_malformed", key=self.key, error=str(e))
            return None

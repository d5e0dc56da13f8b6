"""Queue consumer loop shared by the worker process and the monitor."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from redis.exceptions import RedisError

from .jobs import FetchCommitsJob, PersistCommitsJob
from .queue import CommitQueue, Reservation

logger = structlog.get_logger(__name__)

JobHandler = Callable[[FetchCommitsJob | PersistCommitsJob], Awaitable[None]]


class JobConsumer:
    """Drains a CommitQueue, one job at a time.

    A failing or timed-out job is logged and acknowledged; it never stops
    the loop and is not retried here. Redis errors are logged and the loop
    backs off for one poll interval.
    """

    def __init__(
        self,
        queue: CommitQueue,
        handler: JobHandler,
        poll_timeout: float = 5.0,
        job_timeout: float | None = None,
    ) -> None:
        """Initialize the consumer.

        Args:
            queue: Queue to consume.
            handler: Coroutine called for each job.
            poll_timeout: Seconds to block on an empty queue before re-checking
                for shutdown.
            job_timeout: Upper bound in seconds for one job, None for no limit.
        """
        self.queue = queue
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._job_timeout = job_timeout
        self._stopping = asyncio.Event()
        self._logger = logger.bind(component="job_consumer", queue=queue.name)
        self.processed = 0
        self.failed = 0

    def stop(self) -> None:
        """Ask the loop to exit after the current job."""
        self._stopping.set()

    async def run(self) -> None:
        """Consume jobs until ``stop`` is called or the task is cancelled."""
        try:
            await self.queue.recover()
        except RedisError as e:
            self._logger.warning("queue_recover_failed", error=str(e))
        self._logger.info("consumer_started")

        while not self._stopping.is_set():
            try:
                reservation = await self.queue.reserve(timeout=self._poll_timeout)
            except RedisError as e:
                self._logger.warning("queue_unavailable", error=str(e))
                await asyncio.sleep(self._poll_timeout)
                continue
            if reservation is None:
                continue
            try:
                await self.process_one(reservation.job)
            finally:
                await self._ack(reservation)

        self._logger.info("consumer_stopped", processed=self.processed, failed=self.failed)

    async def _ack(self, reservation: Reservation) -> None:
        # an unacknowledged job stays in the processing list until the next recover
        try:
            await self.queue.ack(reservation)
        except RedisError as e:
            self._logger.warning("queue_ack_failed", kind=reservation.job.kind, error=str(e))

    async def process_one(self, job: FetchCommitsJob | PersistCommitsJob) -> bool:
        """Run the handler for one job, isolating its failure.

        Returns:
            True if the handler completed.
        """
        try:
            if self._job_timeout:
                await asyncio.wait_for(self._handler(job), timeout=self._job_timeout)
            else:
                await self._handler(job)
        except TimeoutError:
            self.failed += 1
            self._logger.error(
                "job_timed_out",
                kind=job.kind,
                org=job.org_name,
                repo=job.repo_name,
                timeout=self._job_timeout,
            )
            return False
        except Exception as e:
            self.failed += 1
            self._logger.exception(
                "job_failed",
                kind=job.kind,
                org=job.org_name,
                repo=job.repo_name,
                error=str(e),
            )
            return False

        self.processed += 1
        return True

"""In-process delayed job queue with unique keys, bounded concurrency and retry backoff."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Callable, Awaitable

from nudge.infrastructure.config import COMPLETED_JOB_RETENTION_S, WORKER_CONCURRENCY
from nudge.infrastructure.logger import logger
from nudge.jobs.types import DelayedJob, RetryPolicy, job_key

JobHandler = Callable[[str], Awaitable[None]]
ExhaustedHandler = Callable[[DelayedJob, BaseException], Awaitable[None]]


class AsyncioJobQueue:
    """One timer task per job; a semaphore bounds how many handlers run at once.

    Jobs are keyed by notification id. A key that is delayed, active, failed,
    or completed within the retention window cannot be enqueued again.
    """

    def __init__(
        self,
        handler: JobHandler | None = None,
        concurrency: int = WORKER_CONCURRENCY,
        policy: RetryPolicy | None = None,
        completed_retention_s: float = COMPLETED_JOB_RETENTION_S,
        on_exhausted: ExhaustedHandler | None = None,
    ) -> None:
        self._handler = handler
        self._concurrency = max(1, concurrency)
        self._semaphore = asyncio.Semaphore(self._concurrency)
        self._policy = policy or RetryPolicy()
        self._completed_retention_s = completed_retention_s
        self._on_exhausted = on_exhausted
        self._jobs: dict[str, DelayedJob] = {}
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._closing = False

    def set_handler(self, fn: JobHandler) -> None:
        self._handler = fn

    def set_on_exhausted(self, fn: ExhaustedHandler) -> None:
        self._on_exhausted = fn

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def closed(self) -> bool:
        return self._closing

    async def enqueue(self, notification_id: str, delay_s: float) -> bool:
        """Schedule a job for ``notification_id`` after ``delay_s`` seconds. False if refused or a duplicate."""
        if self._closing:
            logger.warning("Queue closing, job refused", notification_id=notification_id)
            return False

        loop = asyncio.get_running_loop()
        self._prune_completed(loop.time())

        key = job_key(notification_id)
        existing = self._jobs.get(key)
        if existing:
            logger.debug("Job already queued, skipping", key=key, state=existing.state)
            return False

        delay = max(delay_s, 0.0)
        job = DelayedJob(key=key, notification_id=notification_id, fire_at=loop.time() + delay)
        self._jobs[key] = job
        self._arm(job, delay)
        logger.info("Job enqueued", key=key, delay_s=round(delay, 3))
        return True

    def get_job(self, notification_id: str) -> DelayedJob | None:
        return self._jobs.get(job_key(notification_id))

    def counts(self) -> dict[str, int]:
        return dict(Counter(job.state for job in self._jobs.values()))

    async def close(self) -> None:
        """Refuse new jobs, cancel timers that have not fired, and wait for active handlers."""
        self._closing = True
        active: list[asyncio.Task[None]] = []
        for key, task in list(self._timers.items()):
            job = self._jobs.get(key)
            if job and job.state == "active":
                active.append(task)
            else:
                task.cancel()

        logger.info("Job queue closing", active=len(active), cancelled=len(self._timers) - len(active))
        await asyncio.gather(*self._timers.values(), return_exceptions=True)
        self._timers.clear()

    # --- Internal ---

    def _arm(self, job: DelayedJob, delay: float) -> None:
        task = asyncio.create_task(self._fire(job, delay), name=job.key)
        self._timers[job.key] = task

        def _forget(done: asyncio.Task[None], key: str = job.key) -> None:
            if self._timers.get(key) is done:
                del self._timers[key]

        task.add_done_callback(_forget)

    async def _fire(self, job: DelayedJob, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

        async with self._semaphore:
            if self._closing:
                return
            assert self._handler is not None, "Job handler not set"
            job.state = "active"
            job.attempts_made += 1
            loop = asyncio.get_running_loop()

            try:
                await self._handler(job.notification_id)
            except Exception as err:
                await self._handle_failure(job, err, loop.time())
                return

            job.state = "completed"
            job.last_error = None
            job.finished_at = loop.time()
            logger.debug("Job completed", key=job.key, attempts=job.attempts_made)

    async def _handle_failure(self, job: DelayedJob, err: Exception, now: float) -> None:
        job.last_error = str(err) or type(err).__name__

        if job.attempts_made < self._policy.attempts and not self._closing:
            delay_s = self._policy.delay_before_retry(job.attempts_made)
            job.state = "delayed"
            job.fire_at = now + delay_s
            logger.warning(
                "Job failed, scheduling retry with backoff",
                key=job.key,
                attempt=job.attempts_made,
                delay_s=delay_s,
                error=job.last_error,
            )
            self._arm(job, delay_s)
            return

        job.state = "failed"
        job.finished_at = now
        if self._closing:
            logger.warning("Queue closing, retry abandoned", key=job.key, attempt=job.attempts_made)
            return

        logger.error("Job failed permanently", key=job.key, attempts=job.attempts_made, error=job.last_error)
        if self._on_exhausted:
            try:
                await self._on_exhausted(job, err)
            except Exception:
                logger.exception("Error in exhausted-job callback", key=job.key)

    def _prune_completed(self, now: float) -> None:
        expired = [
            key
            for key, job in self._jobs.items()
            if job.state == "completed" and job.finished_at is not None
            and now - job.finished_at > self._completed_retention_s
        ]
        for key in expired:
            del self._jobs[key]

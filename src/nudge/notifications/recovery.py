"""Recovery sweep: re-enqueues stored notifications and repairs broken reminder chains."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from nudge.infrastructure.clock import utcnow
from nudge.infrastructure.config import JOB_ATTEMPTS, RECOVERY_BATCH_SIZE, RECOVERY_POLL_INTERVAL
from nudge.infrastructure.logger import logger
from nudge.infrastructure.poll_loop import PollLoop, start_poll_loop
from nudge.jobs.types import JobQueue
from nudge.notifications.repository import NotificationRepository
from nudge.scheduling.service import SchedulingService


class RecoverySweep:
    """The job queue lives in memory; the notifications table is what survives a restart."""

    def __init__(
        self,
        notification_repo: NotificationRepository,
        scheduling_service: SchedulingService,
        queue: JobQueue,
        batch_size: int = RECOVERY_BATCH_SIZE,
        max_attempts: int = JOB_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._notification_repo = notification_repo
        self._scheduling = scheduling_service
        self._queue = queue
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._clock = clock

    async def recover_on_startup(self) -> int:
        """Release claims left by a crash and enqueue every SCHEDULED row with its remaining delay.

        FAILED rows with attempts left were waiting on an in-memory retry; they
        are enqueued to run now.
        """
        released = self._notification_repo.release_stale_claims()
        if released:
            logger.warning("Released stale PROCESSING claims", count=released)

        now = self._clock()
        enqueued = 0
        # LIMIT -1 is unbounded in SQLite.
        for notification in self._notification_repo.get_scheduled(limit=-1):
            delay_s = max((notification.scheduled_at - now).total_seconds(), 0.0)
            if await self._queue.enqueue(notification.id, delay_s):
                enqueued += 1
        for notification in self._notification_repo.get_retryable(self._max_attempts):
            if await self._queue.enqueue(notification.id, 0):
                enqueued += 1
        logger.info("Recovered scheduled notifications", count=enqueued)
        return enqueued

    async def sweep(self) -> tuple[int, int]:
        """Enqueue due SCHEDULED rows and re-arm orphaned chains. Returns (enqueued, rearmed)."""
        now = self._clock()

        enqueued = 0
        for notification in self._notification_repo.get_scheduled(self._batch_size, due_before=now):
            if await self._queue.enqueue(notification.id, 0):
                enqueued += 1

        rearmed = 0
        for task_id in self._notification_repo.find_orphaned_tasks(now, self._batch_size, self._max_attempts):
            if await self._scheduling.rearm(task_id):
                rearmed += 1

        if enqueued or rearmed:
            logger.info("Recovery sweep", enqueued=enqueued, rearmed=rearmed)
        return enqueued, rearmed


def start_recovery_loop(recovery: RecoverySweep, interval_s: float = RECOVERY_POLL_INTERVAL) -> PollLoop:
    """Start the recovery sweep polling loop."""

    async def poll() -> None:
        await recovery.sweep()

    return start_poll_loop("RecoverySweep", interval_s, poll)

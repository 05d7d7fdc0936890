"""Scheduling service: keeps exactly zero or one pending reminder per task."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable

from nudge.infrastructure.clock import ensure_utc, utcnow
from nudge.infrastructure.logger import logger
from nudge.jobs.types import JobQueue
from nudge.notifications.repository import DuplicatePendingReminderError, NotificationRepository
from nudge.notifications.types import Notification, NotificationType
from nudge.profiles.repository import ProfileRepository
from nudge.profiles.types import UserSchedulingProfile
from nudge.scheduling.calculator import ReminderSlot, compute_next, pre_start_reminders
from nudge.tasks.repository import TaskRepository
from nudge.tasks.types import Task


class SchedulingService:
    def __init__(
        self,
        notification_repo: NotificationRepository,
        task_repo: TaskRepository,
        profile_repo: ProfileRepository,
        queue: JobQueue,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._notification_repo = notification_repo
        self._task_repo = task_repo
        self._profile_repo = profile_repo
        self._queue = queue
        self._clock = clock

    # --- Reminder chain ---

    async def on_task_created(self, task: Task) -> list[Notification]:
        """Schedule the single pre-start reminder for a new task."""
        if not task.is_active:
            logger.info("Task not active, no reminders", task_id=task.id, status=task.status.value)
            return []

        now = self._clock()
        deadline = ensure_utc(task.deadline)
        if now >= deadline:
            logger.info("Deadline passed, no reminders", task_id=task.id, deadline=deadline.isoformat())
            return []

        # Replayed task.created events land here a second time.
        if self._notification_repo.has_pending_for_task(task.id):
            logger.info("Task already has a pending reminder, skipping", task_id=task.id)
            return []

        profile = self._profile_repo.get_or_default(task.user_id)
        created: list[Notification] = []
        for slot in pre_start_reminders(task.start_date, profile, now):
            if slot.scheduled_at >= deadline:
                logger.info("Pre-start reminder falls after deadline, dropped", task_id=task.id, reason=slot.reason)
                continue
            notification = await self._schedule_reminder(task, slot)
            if notification:
                created.append(notification)

        logger.info("Scheduled pre-start reminders", task_id=task.id, count=len(created))
        return created

    async def on_reminder_sent(
        self, task: Task, profile: UserSchedulingProfile, sent_at: datetime | None = None
    ) -> Notification | None:
        """Schedule the next frequency-based reminder. Call only after the previous one is SENT."""
        if not task.is_active:
            logger.info("Task not active, reminder chain ends", task_id=task.id, status=task.status.value)
            return None

        now = ensure_utc(sent_at) if sent_at else self._clock()
        if now >= ensure_utc(task.deadline):
            logger.info("Deadline passed, reminder chain ends", task_id=task.id, deadline=task.deadline.isoformat())
            return None

        slot = compute_next(now, profile, task.deadline, is_frequency_based=True)
        if slot is None:
            logger.info("No valid next reminder time, reminder chain ends", task_id=task.id)
            return None

        notification = await self._schedule_reminder(task, slot)
        if notification:
            logger.info(
                "Next reminder scheduled",
                task_id=task.id,
                notification_id=notification.id,
                scheduled_at=notification.scheduled_at.isoformat(),
                reason=slot.reason,
            )
        return notification

    async def rearm(self, task_id: str) -> Notification | None:
        """Restart a chain from now, e.g. after a reminder exhausted its retries."""
        task = self._task_repo.get_task_by_id(task_id)
        if not task:
            logger.info("Task not found, reminder chain ends", task_id=task_id)
            return None
        profile = self._profile_repo.get_or_default(task.user_id)
        return await self.on_reminder_sent(task, profile)

    async def on_reminder_failed(self, notification: Notification) -> Notification | None:
        if not notification.task_id or notification.type != NotificationType.REMINDER:
            return None
        logger.warning("Reminder delivery gave up, re-arming chain", task_id=notification.task_id, notification_id=notification.id)
        return await self.rearm(notification.task_id)

    async def on_task_completed(
        self, task_id: str, user_id: str, dream_id: str | None = None, source_event_id: str | None = None
    ) -> int:
        """Archive the task's future reminders and send one celebration."""
        archived = self._archive(task_id)
        await self.notify(
            user_id,
            dream_id,
            NotificationType.MOTIVATIONAL,
            "Great job! Task completed! Keep the momentum going!",
            metadata={"taskId": task_id, "event": "task.completed"},
            source_event_id=source_event_id,
        )
        return archived

    async def on_task_blocked(self, task_id: str) -> int:
        return self._archive(task_id)

    # --- Motivational ---

    async def on_dream_created(
        self, dream_id: str, user_id: str, title: str, deadline: datetime, source_event_id: str | None = None
    ) -> Notification | None:
        seconds_left = (ensure_utc(deadline) - self._clock()).total_seconds()
        days_until = max(0, math.ceil(seconds_left / 86400))
        return await self.notify(
            user_id,
            dream_id,
            NotificationType.MOTIVATIONAL,
            f'Dream created: "{title}". {days_until} days to make it happen!',
            metadata={"event": "dream.created"},
            source_event_id=source_event_id,
        )

    async def on_dream_completed(
        self, dream_id: str, user_id: str, source_event_id: str | None = None
    ) -> Notification | None:
        return await self.notify(
            user_id,
            dream_id,
            NotificationType.MOTIVATIONAL,
            "Congratulations! You completed your dream!",
            metadata={"event": "dream.completed"},
            source_event_id=source_event_id,
        )

    async def notify(
        self,
        user_id: str,
        dream_id: str | None,
        notification_type: NotificationType,
        message: str,
        metadata: dict[str, Any] | None = None,
        source_event_id: str | None = None,
    ) -> Notification | None:
        """Create an immediate notification that is not part of a reminder chain."""
        if source_event_id and self._notification_repo.exists_for_source_event(source_event_id):
            logger.info("Notification for event already created, skipping", event_id=source_event_id)
            return None

        meta = dict(metadata or {})
        if source_event_id:
            meta["sourceEventId"] = source_event_id
        notification = self._notification_repo.create(
            Notification(
                user_id=user_id,
                dream_id=dream_id,
                type=notification_type,
                message=message,
                scheduled_at=self._clock(),
                metadata=meta or None,
            )
        )
        await self._enqueue(notification)
        return notification

    # --- Internal ---

    async def _schedule_reminder(self, task: Task, slot: ReminderSlot) -> Notification | None:
        try:
            notification = self._notification_repo.create(
                Notification(
                    user_id=task.user_id,
                    dream_id=task.dream_id,
                    task_id=task.id,
                    type=NotificationType.REMINDER,
                    scheduled_at=slot.scheduled_at,
                    metadata={"kind": slot.kind, "reason": slot.reason},
                )
            )
        except DuplicatePendingReminderError:
            logger.info("Task already has a pending reminder, skipping", task_id=task.id)
            return None
        await self._enqueue(notification)
        return notification

    async def _enqueue(self, notification: Notification) -> None:
        # The row is committed before this point, so a worker can always find it.
        delay_s = max((notification.scheduled_at - self._clock()).total_seconds(), 0.0)
        try:
            await self._queue.enqueue(notification.id, delay_s)
        except Exception:
            logger.exception("Failed to enqueue notification job, left for recovery sweep", notification_id=notification.id)

    def _archive(self, task_id: str) -> int:
        archived = self._notification_repo.archive_pending_for_task(task_id)
        if archived:
            logger.info("Archived future notifications", task_id=task_id, count=archived)
        return archived

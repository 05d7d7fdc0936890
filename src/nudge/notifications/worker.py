"""Delivery worker: claims a due notification, sends it, and chains the next reminder."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

from nudge.infrastructure.clock import utcnow
from nudge.infrastructure.config import TimeoutConfig
from nudge.infrastructure.logger import logger
from nudge.jobs.types import DelayedJob
from nudge.notifications.dispatcher import DispatchPayload, DispatchResult, Dispatcher
from nudge.notifications.messages import MessageGenerator, build_actions, default_message, task_context
from nudge.notifications.repository import NotificationRepository
from nudge.notifications.types import Notification, NotificationStatus, NotificationType
from nudge.profiles.repository import ProfileRepository
from nudge.profiles.types import UserSchedulingProfile
from nudge.scheduling.service import SchedulingService
from nudge.tasks.repository import TaskRepository
from nudge.tasks.types import Task


class DispatchFailedError(Exception):
    """Raised after a failed send so the job queue retries the job."""

    def __init__(self, notification_id: str, error: str) -> None:
        super().__init__(f"Dispatch failed for {notification_id}: {error}")
        self.notification_id = notification_id
        self.error = error


class DeliveryWorker:
    def __init__(
        self,
        notification_repo: NotificationRepository,
        task_repo: TaskRepository,
        profile_repo: ProfileRepository,
        scheduling_service: SchedulingService,
        message_generator: MessageGenerator,
        dispatcher: Dispatcher,
        timeouts: TimeoutConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._notification_repo = notification_repo
        self._task_repo = task_repo
        self._profile_repo = profile_repo
        self._scheduling = scheduling_service
        self._generator = message_generator
        self._dispatcher = dispatcher
        self._timeouts = timeouts or TimeoutConfig()
        self._clock = clock

    async def process(self, notification_id: str) -> None:
        """Job handler. Returns quietly when the row is gone, claimed elsewhere, archived, or its task is over."""
        if not self._notification_repo.claim(notification_id):
            existing = self._notification_repo.get(notification_id)
            if existing is None:
                logger.warning("Notification not found", notification_id=notification_id)
            else:
                logger.debug("Notification not claimable, skipping", notification_id=notification_id, status=existing.status.value)
            return

        notification = self._notification_repo.get(notification_id)
        assert notification is not None

        try:
            task = self._task_repo.get_task_by_id(notification.task_id) if notification.task_id else None
            if notification.type == NotificationType.REMINDER and notification.task_id and not (task and task.is_active):
                # Completion event not processed yet; the chain ends here.
                self._notification_repo.archive(notification.id)
                logger.info("Task no longer active, reminder archived", notification_id=notification.id, task_id=notification.task_id)
                return
            profile = self._profile_repo.get_or_default(notification.user_id)

            message = notification.message or await self._generate(notification, task, profile)
            metadata = notification.metadata
            if notification.type == NotificationType.REMINDER and task is not None:
                metadata = {**(metadata or {}), **build_actions(task)}
            self._notification_repo.update_content(notification.id, message, metadata)

            result = await self._dispatch(
                DispatchPayload(
                    recipient=notification.user_id,
                    notification_id=notification.id,
                    notification_type=notification.type,
                    message=message,
                    scheduled_at=notification.scheduled_at,
                    task_id=notification.task_id,
                    dream_id=notification.dream_id,
                    metadata=metadata,
                )
            )
        except Exception as err:
            self._notification_repo.mark_failed(notification.id, str(err) or type(err).__name__)
            raise

        if not result.success:
            error = result.error or "unknown dispatch error"
            self._notification_repo.mark_failed(notification.id, error)
            logger.error("Notification dispatch failed", notification_id=notification.id, user_id=notification.user_id, error=error)
            raise DispatchFailedError(notification.id, error)

        self._notification_repo.mark_sent(notification.id, self._clock())
        logger.info("Notification sent", notification_id=notification.id, user_id=notification.user_id, type=notification.type.value)

        if notification.type == NotificationType.REMINDER and notification.task_id:
            await self._chain_next(notification, profile)

    async def on_job_exhausted(self, job: DelayedJob, error: BaseException) -> None:
        """Queue callback once a job has used all its attempts."""
        notification = self._notification_repo.get(job.notification_id)
        if notification is None or notification.status != NotificationStatus.FAILED:
            return
        logger.error(
            "Notification delivery abandoned",
            notification_id=notification.id,
            attempts=job.attempts_made,
            error=str(error),
        )
        await self._scheduling.on_reminder_failed(notification)

    # --- Internal ---

    async def _chain_next(self, notification: Notification, profile: UserSchedulingProfile) -> None:
        # Re-read: the task may have been completed while this reminder was in flight.
        task = self._task_repo.get_task_by_id(notification.task_id) if notification.task_id else None
        if task is None:
            logger.info("Task not found for next reminder", task_id=notification.task_id)
            return
        try:
            await self._scheduling.on_reminder_sent(task, profile, self._clock())
        except Exception:
            logger.exception("Failed to schedule next reminder, left for recovery sweep", task_id=task.id)

    async def _generate(self, notification: Notification, task: Task | None, profile: UserSchedulingProfile) -> str:
        fallback = default_message(notification.type, notification.kind)
        dream_context = {"dream_id": notification.dream_id} if notification.dream_id else None
        try:
            text = await asyncio.wait_for(
                self._generator.generate(
                    notification.type,
                    profile.motivation_tone,
                    task_context(task, notification.kind),
                    dream_context,
                ),
                timeout=self._timeouts.message_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Message generation timed out, using default", notification_id=notification.id)
            return fallback
        except Exception as err:
            logger.warning("Message generation failed, using default", notification_id=notification.id, error=str(err))
            return fallback
        return text.strip() if text and text.strip() else fallback

    async def _dispatch(self, payload: DispatchPayload) -> DispatchResult:
        try:
            return await asyncio.wait_for(self._dispatcher.send(payload), timeout=self._timeouts.dispatch_timeout_s)
        except asyncio.TimeoutError:
            return DispatchResult(success=False, error=f"dispatch timed out after {self._timeouts.dispatch_timeout_s}s")
        except Exception as err:
            return DispatchResult(success=False, error=str(err) or type(err).__name__)

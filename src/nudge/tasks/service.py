"""Task service: task lifecycle mutations that feed the domain event log."""

from __future__ import annotations

import random
import string
import time
from datetime import datetime

from nudge.events.repository import EventLog
from nudge.events.types import (
    DreamCompletedPayload,
    DreamCreatedPayload,
    EventType,
    TaskCompletedPayload,
    TaskCreatedPayload,
    TaskProgressPayload,
)
from nudge.infrastructure.clock import ensure_utc
from nudge.infrastructure.logger import logger
from nudge.scheduling.service import SchedulingService
from nudge.tasks.repository import TaskRepository
from nudge.tasks.types import Task, TaskStatus


class TaskNotFoundError(Exception):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskService:
    def __init__(self, task_repo: TaskRepository, event_log: EventLog, scheduling: SchedulingService) -> None:
        self._task_repo = task_repo
        self._event_log = event_log
        self._scheduling = scheduling

    # --- CRUD ---

    def create_task(
        self,
        user_id: str,
        title: str,
        start_date: datetime,
        deadline: datetime,
        dream_id: str | None = None,
    ) -> Task:
        if ensure_utc(deadline) <= ensure_utc(start_date):
            raise ValueError("deadline must be after start_date")

        rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
        task = Task(
            id=f"task-{int(time.time())}-{rand}",
            user_id=user_id,
            dream_id=dream_id,
            title=title,
            start_date=ensure_utc(start_date),
            deadline=ensure_utc(deadline),
        )
        self._task_repo.create_task(task)
        self._event_log.publish(
            EventType.TASK_CREATED,
            TaskCreatedPayload(
                task_id=task.id,
                dream_id=task.dream_id,
                user_id=task.user_id,
                start_date=task.start_date,
                deadline=task.deadline,
            ),
        )
        return task

    def get(self, task_id: str) -> Task | None:
        return self._task_repo.get_task_by_id(task_id)

    # --- Lifecycle ---

    def complete_task(self, task_id: str) -> Task:
        task = self._require(task_id)
        self._task_repo.set_status(task_id, TaskStatus.COMPLETED)
        self._event_log.publish(
            EventType.TASK_COMPLETED,
            TaskCompletedPayload(task_id=task.id, dream_id=task.dream_id, user_id=task.user_id),
        )
        return self._require(task_id)

    async def block_task(self, task_id: str) -> Task:
        """Blocking ends the reminder chain immediately; there is nothing to celebrate."""
        self._require(task_id)
        self._task_repo.set_status(task_id, TaskStatus.BLOCKED)
        await self._scheduling.on_task_blocked(task_id)
        logger.info("Task blocked", task_id=task_id)
        return self._require(task_id)

    def update_progress(self, task_id: str, progress_percent: int) -> Task:
        if not 0 <= progress_percent <= 100:
            raise ValueError("progress_percent must be between 0 and 100")
        task = self._require(task_id)
        self._task_repo.set_progress(task_id, progress_percent)
        if task.status == TaskStatus.PENDING and progress_percent > 0:
            self._task_repo.set_status(task_id, TaskStatus.IN_PROGRESS)
        self._event_log.publish(
            EventType.TASK_PROGRESS_UPDATED,
            TaskProgressPayload(task_id=task.id, dream_id=task.dream_id, user_id=task.user_id, progress=progress_percent),
        )
        return self._require(task_id)

    # --- Dreams ---

    def create_dream_event(self, dream_id: str, user_id: str, title: str, deadline: datetime) -> None:
        self._event_log.publish(
            EventType.DREAM_CREATED,
            DreamCreatedPayload(dream_id=dream_id, user_id=user_id, title=title, deadline=ensure_utc(deadline)),
        )

    def complete_dream_event(self, dream_id: str, user_id: str) -> None:
        self._event_log.publish(EventType.DREAM_COMPLETED, DreamCompletedPayload(dream_id=dream_id, user_id=user_id))

    def _require(self, task_id: str) -> Task:
        task = self._task_repo.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

"""Domain event handlers: one per event type, validate then execute."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from nudge.events.types import (
    DomainEvent,
    DreamCompletedPayload,
    DreamCreatedPayload,
    EventType,
    TaskCompletedPayload,
    TaskCreatedPayload,
    TaskProgressPayload,
)
from nudge.infrastructure.logger import logger
from nudge.scheduling.service import SchedulingService
from nudge.tasks.repository import TaskRepository
from nudge.tasks.types import Task


class EventHandlerError(Exception):
    """Error raised by event handlers for expected failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class DomainEventHandler(ABC):
    """Base class for domain event handlers."""

    @property
    @abstractmethod
    def event_type(self) -> EventType: ...

    @abstractmethod
    def validate(self, payload: dict[str, Any]) -> Any: ...

    @abstractmethod
    async def execute(self, payload: Any, event: DomainEvent) -> None: ...

    async def handle(self, event: DomainEvent) -> None:
        try:
            validated = self.validate(event.payload)
        except ValidationError as err:
            raise EventHandlerError("Invalid event payload", {"errors": err.error_count()}) from err
        await self.execute(validated, event)


class TaskCreatedHandler(DomainEventHandler):
    event_type = EventType.TASK_CREATED

    def __init__(self, scheduling: SchedulingService, task_repo: TaskRepository) -> None:
        self._scheduling = scheduling
        self._task_repo = task_repo

    def validate(self, payload: dict[str, Any]) -> TaskCreatedPayload:
        return TaskCreatedPayload.model_validate(payload)

    async def execute(self, payload: TaskCreatedPayload, event: DomainEvent) -> None:
        # Prefer the stored task (current status); fall back to the event snapshot.
        task = self._task_repo.get_task_by_id(payload.task_id) or Task(
            id=payload.task_id,
            user_id=payload.user_id,
            dream_id=payload.dream_id,
            start_date=payload.start_date,
            deadline=payload.deadline,
        )
        created = await self._scheduling.on_task_created(task)
        logger.info("Task created: reminders scheduled", task_id=payload.task_id, count=len(created), event_id=event.id)


class TaskCompletedHandler(DomainEventHandler):
    event_type = EventType.TASK_COMPLETED

    def __init__(self, scheduling: SchedulingService) -> None:
        self._scheduling = scheduling

    def validate(self, payload: dict[str, Any]) -> TaskCompletedPayload:
        return TaskCompletedPayload.model_validate(payload)

    async def execute(self, payload: TaskCompletedPayload, event: DomainEvent) -> None:
        archived = await self._scheduling.on_task_completed(
            payload.task_id, payload.user_id, payload.dream_id, source_event_id=event.id
        )
        logger.info("Task completed: notifications archived", task_id=payload.task_id, archived=archived)


class DreamCreatedHandler(DomainEventHandler):
    event_type = EventType.DREAM_CREATED

    def __init__(self, scheduling: SchedulingService) -> None:
        self._scheduling = scheduling

    def validate(self, payload: dict[str, Any]) -> DreamCreatedPayload:
        return DreamCreatedPayload.model_validate(payload)

    async def execute(self, payload: DreamCreatedPayload, event: DomainEvent) -> None:
        await self._scheduling.on_dream_created(
            payload.dream_id, payload.user_id, payload.title, payload.deadline, source_event_id=event.id
        )


class DreamCompletedHandler(DomainEventHandler):
    event_type = EventType.DREAM_COMPLETED

    def __init__(self, scheduling: SchedulingService) -> None:
        self._scheduling = scheduling

    def validate(self, payload: dict[str, Any]) -> DreamCompletedPayload:
        return DreamCompletedPayload.model_validate(payload)

    async def execute(self, payload: DreamCompletedPayload, event: DomainEvent) -> None:
        await self._scheduling.on_dream_completed(payload.dream_id, payload.user_id, source_event_id=event.id)


class TaskProgressHandler(DomainEventHandler):
    """Progress updates are recorded only; no instant follow-up is sent."""

    event_type = EventType.TASK_PROGRESS_UPDATED

    def validate(self, payload: dict[str, Any]) -> TaskProgressPayload:
        return TaskProgressPayload.model_validate(payload)

    async def execute(self, payload: TaskProgressPayload, event: DomainEvent) -> None:
        logger.info("Task progress updated", task_id=payload.task_id, progress=payload.progress)


def default_handlers(scheduling: SchedulingService, task_repo: TaskRepository) -> list[DomainEventHandler]:
    return [
        TaskCreatedHandler(scheduling, task_repo),
        TaskCompletedHandler(scheduling),
        DreamCreatedHandler(scheduling),
        DreamCompletedHandler(scheduling),
        TaskProgressHandler(),
    ]

"""Domain event types and per-event payload models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    TASK_CREATED = "task.created"
    TASK_COMPLETED = "task.completed"
    DREAM_CREATED = "dream.created"
    DREAM_COMPLETED = "dream.completed"
    TASK_PROGRESS_UPDATED = "task.progress_updated"


class EventStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class DomainEvent(BaseModel):
    id: str
    event_type: str  # not EventType: rows written by older producers may carry unknown types
    payload: dict[str, Any]
    status: EventStatus = EventStatus.PENDING
    error: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


# --- Payloads ---


class EventPayload(BaseModel):
    """Payloads are stored camelCase (taskId, startDate) and read either way."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskCreatedPayload(EventPayload):
    task_id: str
    dream_id: str | None = None
    user_id: str
    start_date: datetime
    deadline: datetime


class TaskCompletedPayload(EventPayload):
    task_id: str
    dream_id: str | None = None
    user_id: str


class DreamCreatedPayload(EventPayload):
    dream_id: str
    user_id: str
    title: str
    deadline: datetime


class DreamCompletedPayload(EventPayload):
    dream_id: str
    user_id: str


class TaskProgressPayload(EventPayload):
    task_id: str
    dream_id: str | None = None
    user_id: str
    progress: int

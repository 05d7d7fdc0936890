"""Task domain types."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"
    ARCHIVED = "ARCHIVED"


ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


class Task(BaseModel):
    id: str
    user_id: str
    dream_id: str | None = None
    title: str = ""
    start_date: datetime
    deadline: datetime
    status: TaskStatus = TaskStatus.PENDING
    progress_percent: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

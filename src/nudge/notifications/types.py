"""Notification domain types."""

from __future__ import annotations

import time
import random
import string
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    REMINDER = "REMINDER"
    MOTIVATIONAL = "MOTIVATIONAL"
    SYSTEM = "SYSTEM"
    PROGRESS_CHECK = "PROGRESS_CHECK"


class NotificationStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    FAILED = "FAILED"
    ARCHIVED = "ARCHIVED"


def new_notification_id() -> str:
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"notif-{int(time.time())}-{rand}"


class Notification(BaseModel):
    id: str = Field(default_factory=new_notification_id)
    user_id: str
    dream_id: str | None = None
    task_id: str | None = None
    type: NotificationType = NotificationType.REMINDER
    message: str = ""
    scheduled_at: datetime
    status: NotificationStatus = NotificationStatus.SCHEDULED
    metadata: dict[str, Any] | None = None
    attempts: int = 0
    last_error: str | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def kind(self) -> str | None:
        """Reminder kind recorded at scheduling time (pre_start, start_now, frequency)."""
        return (self.metadata or {}).get("kind")

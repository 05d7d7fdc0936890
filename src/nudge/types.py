"""Barrel re-export of all domain types."""

from nudge.events.types import DomainEvent, EventStatus, EventType
from nudge.jobs.types import DelayedJob, RetryPolicy
from nudge.notifications.types import Notification, NotificationStatus, NotificationType
from nudge.profiles.types import MotivationTone, QuietWindow, UserSchedulingProfile
from nudge.scheduling.calculator import ReminderSlot
from nudge.tasks.types import Task, TaskStatus

__all__ = [
    "DelayedJob",
    "DomainEvent",
    "EventStatus",
    "EventType",
    "MotivationTone",
    "Notification",
    "NotificationStatus",
    "NotificationType",
    "QuietWindow",
    "ReminderSlot",
    "RetryPolicy",
    "Task",
    "TaskStatus",
    "UserSchedulingProfile",
]

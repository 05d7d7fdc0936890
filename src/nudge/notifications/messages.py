"""Message generation contract, static fallbacks, and quick-reply actions."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from nudge.infrastructure.config import APP_NAME
from nudge.notifications.types import NotificationType
from nudge.profiles.types import MotivationTone
from nudge.scheduling.calculator import KIND_FREQUENCY, KIND_PRE_START, KIND_START_NOW
from nudge.tasks.types import Task

_DEFAULTS_BY_TYPE: dict[NotificationType, str] = {
    NotificationType.REMINDER: "Time to check in on your task!",
    NotificationType.MOTIVATIONAL: "Keep going!",
    NotificationType.SYSTEM: "New notification",
    NotificationType.PROGRESS_CHECK: "How is your task going? Log your progress.",
}

_DEFAULTS_BY_KIND: dict[str, str] = {
    KIND_PRE_START: "Get ready to start your task soon!",
    KIND_START_NOW: "It's time to begin your task!",
    KIND_FREQUENCY: "Reminder: Keep making progress on your task!",
}


def default_message(notification_type: NotificationType, kind: str | None = None) -> str:
    """Static text used when no message was stored and generation fails."""
    if notification_type == NotificationType.REMINDER and kind in _DEFAULTS_BY_KIND:
        return _DEFAULTS_BY_KIND[kind]
    return _DEFAULTS_BY_TYPE.get(notification_type, f"Check your {APP_NAME}")


@runtime_checkable
class MessageGenerator(Protocol):
    async def generate(
        self,
        notification_type: NotificationType,
        user_tone: MotivationTone,
        task_context: dict[str, Any] | None,
        dream_context: dict[str, Any] | None,
    ) -> str: ...


class StaticMessageGenerator:
    """Deterministic generator used when no personalization backend is configured."""

    async def generate(
        self,
        notification_type: NotificationType,
        user_tone: MotivationTone,
        task_context: dict[str, Any] | None,
        dream_context: dict[str, Any] | None,
    ) -> str:
        kind = (task_context or {}).get("kind")
        base = default_message(notification_type, kind)
        title = (task_context or {}).get("title")
        if notification_type == NotificationType.REMINDER and title:
            return f"{base} ({title})"
        return base


def task_context(task: Task | None, kind: str | None = None) -> dict[str, Any] | None:
    if task is None:
        return {"kind": kind} if kind else None
    return {
        "task_id": task.id,
        "title": task.title,
        "status": task.status.value,
        "progress": task.progress_percent,
        "deadline": task.deadline.isoformat(),
        "kind": kind,
    }


def build_actions(task: Task) -> dict[str, Any]:
    """Quick-reply buttons attached to reminders for tasks that are still open."""
    progress_api = f"POST /tasks/{task.id}/progress"
    return {
        "actions": [
            {"label": "10%", "api": progress_api, "value": 10},
            {"label": "25%", "api": progress_api, "value": 25},
            {"label": "50%", "api": progress_api, "value": 50},
            {"label": "Skip for now", "api": None},
        ]
    }

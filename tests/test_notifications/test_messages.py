"""Tests for message defaults, the static generator, and quick-reply actions."""

from datetime import datetime, timezone

import pytest

from nudge.notifications.messages import StaticMessageGenerator, build_actions, default_message, task_context
from nudge.notifications.types import NotificationType
from nudge.profiles.types import MotivationTone
from nudge.tasks.types import Task


def _task() -> Task:
    return Task(
        id="task-7",
        user_id="user-1",
        title="Stretch",
        start_date=datetime(2025, 1, 6, 9, tzinfo=timezone.utc),
        deadline=datetime(2025, 1, 9, 9, tzinfo=timezone.utc),
    )


class TestDefaultMessage:
    def test_reminder_kinds(self):
        assert default_message(NotificationType.REMINDER, "pre_start") == "Get ready to start your task soon!"
        assert default_message(NotificationType.REMINDER, "start_now") == "It's time to begin your task!"
        assert default_message(NotificationType.REMINDER, "frequency") == "Reminder: Keep making progress on your task!"

    def test_falls_back_to_type(self):
        assert default_message(NotificationType.REMINDER) == "Time to check in on your task!"
        assert default_message(NotificationType.MOTIVATIONAL, "pre_start") == "Keep going!"


class TestStaticGenerator:
    @pytest.mark.asyncio
    async def test_includes_task_title(self):
        text = await StaticMessageGenerator().generate(
            NotificationType.REMINDER, MotivationTone.NEUTRAL, task_context(_task(), "frequency"), None
        )
        assert text == "Reminder: Keep making progress on your task! (Stretch)"

    @pytest.mark.asyncio
    async def test_without_context(self):
        text = await StaticMessageGenerator().generate(NotificationType.SYSTEM, MotivationTone.NEUTRAL, None, None)
        assert text == "New notification"


class TestActions:
    def test_progress_buttons(self):
        actions = build_actions(_task())["actions"]
        assert [a["value"] for a in actions if a["api"]] == [10, 25, 50]
        assert all(a["api"] == "POST /tasks/task-7/progress" for a in actions[:3])
        assert actions[-1] == {"label": "Skip for now", "api": None}

    def test_task_context_without_task(self):
        assert task_context(None) is None
        assert task_context(None, "start_now") == {"kind": "start_now"}

"""Tests for the task service."""

from datetime import timedelta

import pytest

from nudge.events.repository import EventLog
from nudge.events.types import EventType
from nudge.notifications.types import NotificationStatus
from nudge.scheduling.service import SchedulingService
from nudge.tasks.service import TaskNotFoundError, TaskService
from nudge.tasks.types import TaskStatus


@pytest.fixture
def scheduling(db, queue, clock):
    return SchedulingService(db.notification_repo, db.task_repo, db.profile_repo, queue, clock=clock)


@pytest.fixture
def tasks(db, scheduling):
    return TaskService(db.task_repo, EventLog(db.event_repo), scheduling)


class TestCreateTask:
    def test_persists_and_publishes(self, tasks, db, now):
        task = tasks.create_task("user-1", "Draft outline", now + timedelta(hours=3), now + timedelta(days=3), dream_id="d1")

        assert db.task_repo.get_task_by_id(task.id).title == "Draft outline"
        (event,) = db.event_repo.get_pending(10)
        assert event.event_type == EventType.TASK_CREATED.value
        assert event.payload["taskId"] == task.id
        assert event.payload["dreamId"] == "d1"
        assert "startDate" in event.payload

    def test_deadline_must_follow_start(self, tasks, db, now):
        with pytest.raises(ValueError):
            tasks.create_task("user-1", "Backwards", now + timedelta(days=1), now)
        assert db.event_repo.get_pending(10) == []


class TestLifecycle:
    def test_complete_task(self, tasks, db, make_task):
        make_task()
        task = tasks.complete_task("task-1")
        assert task.status == TaskStatus.COMPLETED
        (event,) = db.event_repo.get_pending(10)
        assert event.event_type == "task.completed"

    def test_complete_missing_task(self, tasks):
        with pytest.raises(TaskNotFoundError):
            tasks.complete_task("missing")

    @pytest.mark.asyncio
    async def test_block_task_archives_reminders(self, tasks, scheduling, db, make_task):
        task = make_task()
        (reminder,) = await scheduling.on_task_created(task)

        blocked = await tasks.block_task(task.id)

        assert blocked.status == TaskStatus.BLOCKED
        assert db.notification_repo.get(reminder.id).status == NotificationStatus.ARCHIVED
        assert db.event_repo.get_pending(10) == []

    def test_update_progress(self, tasks, db, make_task):
        make_task()
        task = tasks.update_progress("task-1", 25)
        assert task.progress_percent == 25
        assert task.status == TaskStatus.IN_PROGRESS
        (event,) = db.event_repo.get_pending(10)
        assert event.payload["progress"] == 25

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_progress_range(self, tasks, make_task, percent):
        make_task()
        with pytest.raises(ValueError):
            tasks.update_progress("task-1", percent)


class TestDreamEvents:
    def test_dream_events_published(self, tasks, db, now):
        tasks.create_dream_event("dream-1", "user-1", "Learn piano", now + timedelta(days=30))
        tasks.complete_dream_event("dream-1", "user-1")
        assert [e.event_type for e in db.event_repo.get_pending(10)] == ["dream.created", "dream.completed"]

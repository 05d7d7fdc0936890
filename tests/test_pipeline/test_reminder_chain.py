"""End-to-end reminder chain: task created, reminders sent through the day, task completed."""

from datetime import datetime, timedelta, timezone

import pytest

from nudge.events.dispatcher import EventDispatcher
from nudge.events.handlers import default_handlers
from nudge.events.repository import EventLog
from nudge.infrastructure.config import TimeoutConfig
from nudge.notifications.types import NotificationStatus, NotificationType
from nudge.notifications.worker import DeliveryWorker
from nudge.scheduling.service import SchedulingService
from nudge.tasks.service import TaskService


@pytest.fixture
def pipeline(db, queue, clock, dispatcher, generator):
    scheduling = SchedulingService(db.notification_repo, db.task_repo, db.profile_repo, queue, clock=clock)
    return {
        "tasks": TaskService(db.task_repo, EventLog(db.event_repo), scheduling),
        "events": EventDispatcher(db.event_repo, default_handlers(scheduling, db.task_repo)),
        "worker": DeliveryWorker(
            db.notification_repo, db.task_repo, db.profile_repo, scheduling, generator, dispatcher,
            timeouts=TimeoutConfig(message_timeout_s=0.5, dispatch_timeout_s=0.5), clock=clock,
        ),
    }


def _pending(db, task_id):
    (pending,) = db.notification_repo.get_pending_for_task(task_id)
    return pending


class TestReminderChain:
    @pytest.mark.asyncio
    async def test_day_of_reminders(self, pipeline, db, clock, dispatcher, now):
        task = pipeline["tasks"].create_task("user-1", "Practice scales", now + timedelta(hours=3), now + timedelta(days=3))
        await pipeline["events"].process_batch()

        first = _pending(db, task.id)
        assert first.scheduled_at == now + timedelta(hours=2)
        assert first.kind == "pre_start"

        # Pre-start at 14:00, then hourly until the 23:00 slot falls into sleep
        expected = [datetime(2025, 1, 6, h, tzinfo=timezone.utc) for h in range(14, 23)]
        sent_at = []
        for _ in expected:
            pending = _pending(db, task.id)
            clock.set(pending.scheduled_at)
            await pipeline["worker"].process(pending.id)
            sent_at.append(db.notification_repo.get(pending.id).sent_at)
        assert sent_at == expected

        morning = _pending(db, task.id)
        assert morning.scheduled_at == datetime(2025, 1, 7, 7, tzinfo=timezone.utc)
        assert "sleep" in morning.metadata["reason"]
        assert len(dispatcher.sent) == len(expected)

        # Completing the task archives the morning reminder and celebrates once
        pipeline["tasks"].complete_task(task.id)
        await pipeline["events"].process_batch()

        assert db.notification_repo.get(morning.id).status == NotificationStatus.ARCHIVED
        assert not db.notification_repo.has_pending_for_task(task.id)
        celebrations = [n for n in db.notification_repo.list_for_user("user-1") if n.type == NotificationType.MOTIVATIONAL]
        assert len(celebrations) == 1

        await pipeline["worker"].process(celebrations[0].id)
        assert dispatcher.sent[-1].notification_type == NotificationType.MOTIVATIONAL

    @pytest.mark.asyncio
    async def test_chain_stops_before_deadline(self, pipeline, db, clock, now):
        task = pipeline["tasks"].create_task(
            "user-1", "Short sprint", now + timedelta(minutes=30), now + timedelta(hours=2, minutes=15)
        )
        await pipeline["events"].process_batch()

        for _ in range(5):
            pending = db.notification_repo.get_pending_for_task(task.id)
            if not pending:
                break
            clock.set(pending[0].scheduled_at)
            await pipeline["worker"].process(pending[0].id)

        sent = [n for n in db.notification_repo.get_for_task(task.id) if n.status == NotificationStatus.SENT]
        assert [n.scheduled_at for n in sent] == [
            now + timedelta(minutes=30),
            now + timedelta(hours=1, minutes=30),
        ]
        assert not db.notification_repo.has_pending_for_task(task.id)

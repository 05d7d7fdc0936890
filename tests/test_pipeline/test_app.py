"""Tests for the orchestrator lifecycle and the notifications listing command."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from nudge.__main__ import run_notifications
from nudge.app import Orchestrator
from nudge.infrastructure.database import AppDatabase
from nudge.notifications.types import Notification, NotificationStatus, NotificationType


class TestOrchestrator:
    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, tmp_path, dispatcher):
        orchestrator = Orchestrator(dispatcher=dispatcher)
        await orchestrator.start(tmp_path / "nudge.db")
        assert orchestrator.running

        start = datetime.now(timezone.utc) + timedelta(hours=3)
        task = orchestrator.tasks.create_task("user-1", "Read", start, start + timedelta(days=1))
        await orchestrator.events.process_batch()
        assert orchestrator.db.notification_repo.has_pending_for_task(task.id)
        assert orchestrator.queue.counts() == {"delayed": 1}

        await orchestrator.shutdown()
        assert not orchestrator.running
        assert not orchestrator.db.is_open

    @pytest.mark.asyncio
    async def test_startup_recovers_interrupted_claims(self, tmp_path, dispatcher):
        path = tmp_path / "nudge.db"
        db = AppDatabase()
        db.init(path)
        stale = db.notification_repo.create(
            Notification(user_id="user-1", type=NotificationType.SYSTEM, message="hi", scheduled_at=datetime.now(timezone.utc))
        )
        db.notification_repo.claim(stale.id)
        db.close()

        orchestrator = Orchestrator(dispatcher=dispatcher)
        await orchestrator.start(path)
        await orchestrator.shutdown()

        reopened = AppDatabase()
        reopened.init(path)
        assert reopened.notification_repo.get(stale.id).status == NotificationStatus.SENT
        reopened.close()


class TestNotificationsCommand:
    def test_prints_newest_first(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "nudge.db"
        monkeypatch.setattr("nudge.__main__.DB_PATH", path)
        db = AppDatabase()
        db.init(path)
        base = datetime(2025, 1, 6, 12, tzinfo=timezone.utc)
        for hours in range(3):
            db.notification_repo.create(
                Notification(user_id="user-1", type=NotificationType.SYSTEM, scheduled_at=base + timedelta(hours=hours))
            )
        db.close()

        run_notifications(["user-1", "--limit", "2"])

        rows = json.loads(capsys.readouterr().out)
        assert len(rows) == 2
        assert rows[0]["scheduled_at"] > rows[1]["scheduled_at"]

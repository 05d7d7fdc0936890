"""Tests for database initialization."""

import sqlite3

import pytest

from nudge.infrastructure.database import AppDatabase, create_schema


class TestSchema:
    def test_tables_created(self, db):
        rows = db.db.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        names = {row["name"] for row in rows}
        assert {"scheduling_profiles", "tasks", "notifications", "domain_events"} <= names

    def test_schema_is_idempotent(self, db):
        create_schema(db.db)
        create_schema(db.db)

    def test_repositories_exposed(self, db):
        assert db.profile_repo is not None
        assert db.task_repo is not None
        assert db.notification_repo is not None
        assert db.event_repo is not None

    def test_frequency_must_be_positive(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            db.db.execute(
                """INSERT INTO scheduling_profiles
                   (user_id, sleep_start, sleep_end, frequency_minutes, updated_at)
                   VALUES ('u', '23:00', '07:00', 0, 'x')"""
            )


class TestPendingReminderIndex:
    def _insert(self, db, id: str, status: str, task_id: str | None = "task-1"):
        db.db.execute(
            """INSERT INTO notifications (id, user_id, task_id, type, scheduled_at, status, created_at, updated_at)
               VALUES (?, 'u', ?, 'REMINDER', '2025-01-01T00:00:00.000000Z', ?, 'x', 'x')""",
            (id, task_id, status),
        )

    def test_second_pending_row_rejected(self, db):
        self._insert(db, "n1", "SCHEDULED")
        with pytest.raises(sqlite3.IntegrityError):
            self._insert(db, "n2", "PROCESSING")

    def test_finished_rows_do_not_count(self, db):
        self._insert(db, "n1", "SENT")
        self._insert(db, "n2", "FAILED")
        self._insert(db, "n3", "ARCHIVED")
        self._insert(db, "n4", "SCHEDULED")

    def test_rows_without_task_unconstrained(self, db):
        self._insert(db, "n1", "SCHEDULED", task_id=None)
        self._insert(db, "n2", "SCHEDULED", task_id=None)


class TestLifecycle:
    def test_init_creates_file(self, tmp_path):
        app_db = AppDatabase()
        path = tmp_path / "store" / "nudge.db"
        app_db.init(path)
        assert path.exists()
        assert app_db.is_open
        app_db.close()
        assert not app_db.is_open

    def test_db_before_init_fails(self):
        with pytest.raises(AssertionError):
            AppDatabase().db

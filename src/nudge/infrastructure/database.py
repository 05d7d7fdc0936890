"""SQLite database schema and AppDatabase composition root."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from nudge.infrastructure.config import DB_PATH
from nudge.infrastructure.logger import logger


def create_schema(db: sqlite3.Connection) -> None:
    """Create all tables and indexes. Safe to call multiple times (IF NOT EXISTS)."""
    db.executescript("""
        CREATE TABLE IF NOT EXISTS scheduling_profiles (
            user_id TEXT PRIMARY KEY,
            timezone TEXT NOT NULL DEFAULT 'UTC',
            sleep_start TEXT NOT NULL,
            sleep_end TEXT NOT NULL,
            quiet_hours TEXT NOT NULL DEFAULT '[]',
            frequency_minutes INTEGER NOT NULL CHECK (frequency_minutes > 0),
            motivation_tone TEXT NOT NULL DEFAULT 'NEUTRAL',
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            dream_id TEXT,
            title TEXT NOT NULL DEFAULT '',
            start_date TEXT NOT NULL,
            deadline TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',
            progress_percent INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id);

        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            dream_id TEXT,
            task_id TEXT,
            type TEXT NOT NULL,
            message TEXT NOT NULL DEFAULT '',
            scheduled_at TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'SCHEDULED',
            metadata TEXT,
            attempts INTEGER NOT NULL DEFAULT 0,
            last_error TEXT,
            sent_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, scheduled_at);
        CREATE INDEX IF NOT EXISTS idx_notifications_status ON notifications(status, scheduled_at);
        CREATE INDEX IF NOT EXISTS idx_notifications_task ON notifications(task_id);
        -- At most one SCHEDULED/PROCESSING notification per task.
        CREATE UNIQUE INDEX IF NOT EXISTS uq_notifications_pending_task
            ON notifications(task_id)
            WHERE task_id IS NOT NULL AND status IN ('SCHEDULED', 'PROCESSING');

        CREATE TABLE IF NOT EXISTS domain_events (
            id TEXT PRIMARY KEY,
            event_type TEXT NOT NULL,
            payload TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',
            error TEXT,
            created_at TEXT NOT NULL,
            processed_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_domain_events_pending ON domain_events(status, created_at);
    """)


class AppDatabase:
    """Composition root that initializes the DB and exposes repositories."""

    def __init__(self) -> None:
        self._db: sqlite3.Connection | None = None
        # Repositories are set after init
        self.profile_repo: ProfileRepository | None = None  # type: ignore[assignment]
        self.task_repo: TaskRepository | None = None  # type: ignore[assignment]
        self.notification_repo: NotificationRepository | None = None  # type: ignore[assignment]
        self.event_repo: EventRepository | None = None  # type: ignore[assignment]

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> sqlite3.Connection:
        assert self._db is not None, "Database not initialized. Call init() first."
        return self._db

    def init(self, db_path: Path = DB_PATH) -> None:
        """Open (or create) the database file at the standard location."""
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path))
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._init_repos()
        logger.info("Database opened", path=str(db_path))

    def _init_test(self) -> None:
        """For tests only. Creates a fresh in-memory database."""
        self._db = sqlite3.connect(":memory:")
        self._db.row_factory = sqlite3.Row
        self._init_repos()

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None

    def _init_repos(self) -> None:
        assert self._db is not None
        create_schema(self._db)

        # Import here to avoid circular imports
        from nudge.events.repository import EventRepository
        from nudge.notifications.repository import NotificationRepository
        from nudge.profiles.repository import ProfileRepository
        from nudge.tasks.repository import TaskRepository

        self.profile_repo = ProfileRepository(self._db)
        self.task_repo = TaskRepository(self._db)
        self.notification_repo = NotificationRepository(self._db)
        self.event_repo = EventRepository(self._db)

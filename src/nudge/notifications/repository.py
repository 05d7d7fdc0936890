"""Notification rows: creation, atomic claiming, status transitions, and queries."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from nudge.infrastructure.clock import format_instant, parse_instant, utcnow
from nudge.notifications.types import Notification, NotificationStatus, NotificationType


class DuplicatePendingReminderError(Exception):
    """A task already has a SCHEDULED or PROCESSING notification."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task already has a pending notification: {task_id}")
        self.task_id = task_id


class NotificationRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    # --- Creation ---

    def create(self, notification: Notification) -> Notification:
        """Insert and commit. Raises DuplicatePendingReminderError if the task already has a pending row."""
        now = utcnow()
        try:
            self._db.execute(
                """INSERT INTO notifications
                   (id, user_id, dream_id, task_id, type, message, scheduled_at, status, metadata,
                    attempts, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)""",
                (
                    notification.id, notification.user_id, notification.dream_id, notification.task_id,
                    notification.type.value, notification.message, format_instant(notification.scheduled_at),
                    notification.status.value, _dump(notification.metadata),
                    format_instant(now), format_instant(now),
                ),
            )
            self._db.commit()
        except sqlite3.IntegrityError:
            self._db.rollback()
            if notification.task_id and self.has_pending_for_task(notification.task_id):
                raise DuplicatePendingReminderError(notification.task_id) from None
            raise
        return notification.model_copy(update={"created_at": now})

    # --- Reads ---

    def get(self, id: str) -> Notification | None:
        row = self._db.execute("SELECT * FROM notifications WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_notification(row)

    def has_pending_for_task(self, task_id: str) -> bool:
        row = self._db.execute(
            "SELECT 1 FROM notifications WHERE task_id = ? AND status IN ('SCHEDULED', 'PROCESSING') LIMIT 1",
            (task_id,),
        ).fetchone()
        return row is not None

    def get_pending_for_task(self, task_id: str) -> list[Notification]:
        rows = self._db.execute(
            """SELECT * FROM notifications
               WHERE task_id = ? AND status IN ('SCHEDULED', 'PROCESSING')
               ORDER BY scheduled_at""",
            (task_id,),
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def get_for_task(self, task_id: str) -> list[Notification]:
        rows = self._db.execute(
            "SELECT * FROM notifications WHERE task_id = ? ORDER BY scheduled_at, created_at", (task_id,)
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def exists_for_source_event(self, event_id: str) -> bool:
        """True if a notification was already created while handling ``event_id``."""
        row = self._db.execute(
            "SELECT 1 FROM notifications WHERE json_extract(metadata, '$.sourceEventId') = ? LIMIT 1",
            (event_id,),
        ).fetchone()
        return row is not None

    def get_scheduled(self, limit: int, due_before: datetime | None = None) -> list[Notification]:
        if due_before is None:
            rows = self._db.execute(
                "SELECT * FROM notifications WHERE status = 'SCHEDULED' ORDER BY scheduled_at LIMIT ?",
                (limit,),
            ).fetchall()
        else:
            rows = self._db.execute(
                """SELECT * FROM notifications
                   WHERE status = 'SCHEDULED' AND scheduled_at <= ?
                   ORDER BY scheduled_at LIMIT ?""",
                (format_instant(due_before), limit),
            ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def list_for_user(self, user_id: str, limit: int = 50, offset: int = 0) -> list[Notification]:
        """Newest first, for the UI read contract."""
        rows = self._db.execute(
            """SELECT * FROM notifications WHERE user_id = ?
               ORDER BY scheduled_at DESC, created_at DESC LIMIT ? OFFSET ?""",
            (user_id, max(0, limit), max(0, offset)),
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def get_retryable(self, max_attempts: int) -> list[Notification]:
        """FAILED rows that still have retry attempts left."""
        rows = self._db.execute(
            "SELECT * FROM notifications WHERE status = 'FAILED' AND attempts < ? ORDER BY scheduled_at",
            (max_attempts,),
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def find_orphaned_tasks(self, now: datetime, limit: int, max_attempts: int) -> list[str]:
        """Active tasks whose reminder chain has no pending link.

        Only tasks that already had at least one reminder are considered, so a
        task whose chain ended at its deadline is not resurrected (its deadline
        filter excludes it anyway). A FAILED reminder with fewer than
        ``max_attempts`` attempts is still waiting on a retry and keeps its
        task out of the result.
        """
        rows = self._db.execute(
            """SELECT t.id FROM tasks t
               WHERE t.status IN ('PENDING', 'IN_PROGRESS')
                 AND t.deadline > ?
                 AND EXISTS (
                     SELECT 1 FROM notifications n
                     WHERE n.task_id = t.id AND n.type = 'REMINDER' AND n.status IN ('SENT', 'FAILED')
                 )
                 AND NOT EXISTS (
                     SELECT 1 FROM notifications n
                     WHERE n.task_id = t.id AND n.status IN ('SCHEDULED', 'PROCESSING')
                 )
                 AND NOT EXISTS (
                     SELECT 1 FROM notifications n
                     WHERE n.task_id = t.id AND n.type = 'REMINDER' AND n.status = 'FAILED' AND n.attempts < ?
                 )
               ORDER BY t.deadline LIMIT ?""",
            (format_instant(now), max_attempts, limit),
        ).fetchall()
        return [row["id"] for row in rows]

    # --- Transitions ---

    def claim(self, id: str) -> bool:
        """Atomically move SCHEDULED (or FAILED, for a retry) to PROCESSING.

        Returns False if another worker holds the row, it was archived or sent,
        or the task already has a different pending notification.
        """
        try:
            result = self._db.execute(
                """UPDATE notifications
                   SET status = 'PROCESSING', attempts = attempts + 1, updated_at = ?
                   WHERE id = ? AND status IN ('SCHEDULED', 'FAILED')""",
                (format_instant(utcnow()), id),
            )
            self._db.commit()
        except sqlite3.IntegrityError:
            self._db.rollback()
            return False
        return result.rowcount > 0

    def mark_sent(self, id: str, sent_at: datetime | None = None) -> bool:
        sent = sent_at or utcnow()
        result = self._db.execute(
            """UPDATE notifications SET status = 'SENT', sent_at = ?, last_error = NULL, updated_at = ?
               WHERE id = ? AND status = 'PROCESSING'""",
            (format_instant(sent), format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def mark_failed(self, id: str, error: str) -> bool:
        result = self._db.execute(
            """UPDATE notifications SET status = 'FAILED', last_error = ?, updated_at = ?
               WHERE id = ? AND status = 'PROCESSING'""",
            (error[:1000], format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def release(self, id: str) -> bool:
        """Hand a PROCESSING row back to SCHEDULED."""
        result = self._db.execute(
            "UPDATE notifications SET status = 'SCHEDULED', updated_at = ? WHERE id = ? AND status = 'PROCESSING'",
            (format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def release_stale_claims(self) -> int:
        """On startup, return rows left PROCESSING by a crashed process to SCHEDULED."""
        result = self._db.execute(
            "UPDATE notifications SET status = 'SCHEDULED', updated_at = ? WHERE status = 'PROCESSING'",
            (format_instant(utcnow()),),
        )
        self._db.commit()
        return result.rowcount

    def update_content(self, id: str, message: str, metadata: dict | None) -> None:
        self._db.execute(
            "UPDATE notifications SET message = ?, metadata = ?, updated_at = ? WHERE id = ?",
            (message, _dump(metadata), format_instant(utcnow()), id),
        )
        self._db.commit()

    def archive_pending_for_task(self, task_id: str) -> int:
        """SCHEDULED and FAILED rows for the task become ARCHIVED. Returns the count."""
        result = self._db.execute(
            """UPDATE notifications SET status = 'ARCHIVED', updated_at = ?
               WHERE task_id = ? AND status IN ('SCHEDULED', 'FAILED')""",
            (format_instant(utcnow()), task_id),
        )
        self._db.commit()
        return result.rowcount

    def archive(self, id: str) -> bool:
        """Retire a claimed row without sending it."""
        result = self._db.execute(
            "UPDATE notifications SET status = 'ARCHIVED', updated_at = ? WHERE id = ? AND status = 'PROCESSING'",
            (format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def _row_to_notification(self, row: sqlite3.Row) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            dream_id=row["dream_id"],
            task_id=row["task_id"],
            type=NotificationType(row["type"]),
            message=row["message"] or "",
            scheduled_at=parse_instant(row["scheduled_at"]),
            status=NotificationStatus(row["status"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else None,
            attempts=row["attempts"],
            last_error=row["last_error"],
            sent_at=parse_instant(row["sent_at"]) if row["sent_at"] else None,
            created_at=parse_instant(row["created_at"]) if row["created_at"] else None,
        )


def _dump(metadata: dict | None) -> str | None:
    return json.dumps(metadata) if metadata is not None else None

"""Task rows read by the reminder pipeline."""

from __future__ import annotations

import sqlite3

from nudge.infrastructure.clock import format_instant, parse_instant, utcnow
from nudge.tasks.types import Task, TaskStatus


class TaskRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def create_task(self, task: Task) -> None:
        now = format_instant(utcnow())
        self._db.execute(
            """INSERT INTO tasks
               (id, user_id, dream_id, title, start_date, deadline, status, progress_percent, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                task.id, task.user_id, task.dream_id, task.title,
                format_instant(task.start_date), format_instant(task.deadline),
                task.status.value, task.progress_percent, now, now,
            ),
        )
        self._db.commit()

    def get_task_by_id(self, id: str) -> Task | None:
        row = self._db.execute("SELECT * FROM tasks WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_task(row)

    def set_status(self, id: str, status: TaskStatus) -> bool:
        result = self._db.execute(
            "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def set_progress(self, id: str, progress_percent: int) -> bool:
        result = self._db.execute(
            "UPDATE tasks SET progress_percent = ?, updated_at = ? WHERE id = ?",
            (progress_percent, format_instant(utcnow()), id),
        )
        self._db.commit()
        return result.rowcount > 0

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            dream_id=row["dream_id"],
            title=row["title"],
            start_date=parse_instant(row["start_date"]),
            deadline=parse_instant(row["deadline"]),
            status=row["status"],
            progress_percent=row["progress_percent"],
        )

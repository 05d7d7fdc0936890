"""Append-only domain event log."""

from __future__ import annotations

import json
import random
import sqlite3
import string
import time
from typing import Any

from nudge.events.types import DomainEvent, EventPayload, EventStatus, EventType
from nudge.infrastructure.clock import format_instant, parse_instant, utcnow
from nudge.infrastructure.logger import logger


class EventRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def append(self, event_type: str, payload: dict[str, Any]) -> DomainEvent:
        rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
        created_at = utcnow()
        event = DomainEvent(
            id=f"evt-{int(time.time())}-{rand}",
            event_type=event_type,
            payload=payload,
            created_at=created_at,
        )
        self._db.execute(
            """INSERT INTO domain_events (id, event_type, payload, status, created_at)
               VALUES (?, ?, ?, 'PENDING', ?)""",
            (event.id, event.event_type, json.dumps(payload), format_instant(created_at)),
        )
        self._db.commit()
        return event

    def get_by_id(self, id: str) -> DomainEvent | None:
        row = self._db.execute("SELECT * FROM domain_events WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_event(row)

    def get_pending(self, limit: int) -> list[DomainEvent]:
        rows = self._db.execute(
            """SELECT * FROM domain_events WHERE status = 'PENDING'
               ORDER BY created_at, rowid LIMIT ?""",
            (limit,),
        ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def mark_processed(self, id: str) -> None:
        self._db.execute(
            "UPDATE domain_events SET status = 'PROCESSED', error = NULL, processed_at = ? WHERE id = ?",
            (format_instant(utcnow()), id),
        )
        self._db.commit()

    def mark_failed(self, id: str, error: str) -> None:
        self._db.execute(
            "UPDATE domain_events SET status = 'FAILED', error = ?, processed_at = ? WHERE id = ?",
            (error[:1000], format_instant(utcnow()), id),
        )
        self._db.commit()

    def _row_to_event(self, row: sqlite3.Row) -> DomainEvent:
        return DomainEvent(
            id=row["id"],
            event_type=row["event_type"],
            payload=json.loads(row["payload"]),
            status=EventStatus(row["status"]),
            error=row["error"],
            created_at=parse_instant(row["created_at"]),
            processed_at=parse_instant(row["processed_at"]) if row["processed_at"] else None,
        )


class EventLog:
    """Producer-facing side of the log: business mutations publish through here."""

    def __init__(self, event_repo: EventRepository) -> None:
        self._event_repo = event_repo

    def publish(self, event_type: EventType, payload: EventPayload | dict[str, Any]) -> DomainEvent:
        data = payload.to_json_dict() if isinstance(payload, EventPayload) else payload
        event = self._event_repo.append(event_type.value, data)
        logger.info("Event published", event_id=event.id, event_type=event_type.value)
        return event

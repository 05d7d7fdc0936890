"""Scheduling profile persistence."""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from nudge.infrastructure.clock import format_instant, utcnow
from nudge.profiles.types import QuietWindow, UserSchedulingProfile


class ProfileRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get(self, user_id: str) -> UserSchedulingProfile | None:
        row = self._db.execute("SELECT * FROM scheduling_profiles WHERE user_id = ?", (user_id,)).fetchone()
        if not row:
            return None
        return self._row_to_profile(row)

    def get_or_default(self, user_id: str) -> UserSchedulingProfile:
        return self.get(user_id) or UserSchedulingProfile(user_id=user_id)

    def upsert(self, profile: UserSchedulingProfile) -> None:
        self._db.execute(
            """INSERT INTO scheduling_profiles
               (user_id, timezone, sleep_start, sleep_end, quiet_hours, frequency_minutes, motivation_tone, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   timezone = excluded.timezone,
                   sleep_start = excluded.sleep_start,
                   sleep_end = excluded.sleep_end,
                   quiet_hours = excluded.quiet_hours,
                   frequency_minutes = excluded.frequency_minutes,
                   motivation_tone = excluded.motivation_tone,
                   updated_at = excluded.updated_at""",
            (
                profile.user_id,
                profile.timezone,
                profile.sleep_start,
                profile.sleep_end,
                json.dumps([w.model_dump() for w in profile.quiet_hours]),
                profile.notification_frequency_minutes,
                profile.motivation_tone.value,
                format_instant(utcnow()),
            ),
        )
        self._db.commit()

    def update_preferences(self, user_id: str, **changes: Any) -> UserSchedulingProfile:
        """Merge ``changes`` into the stored profile. Raises pydantic.ValidationError on bad values."""
        current = self.get_or_default(user_id)
        merged = current.model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None})
        merged["user_id"] = user_id
        profile = UserSchedulingProfile.model_validate(merged)
        self.upsert(profile)
        return profile

    def _row_to_profile(self, row: sqlite3.Row) -> UserSchedulingProfile:
        return UserSchedulingProfile(
            user_id=row["user_id"],
            timezone=row["timezone"],
            sleep_start=row["sleep_start"],
            sleep_end=row["sleep_end"],
            quiet_hours=[QuietWindow(**w) for w in json.loads(row["quiet_hours"] or "[]")],
            notification_frequency_minutes=row["frequency_minutes"],
            motivation_tone=row["motivation_tone"],
        )

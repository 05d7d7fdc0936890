"""Conversions between UTC storage instants and a user's local wall-clock time."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_HHMM = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")

# Fixed-width so that lexical order in SQLite equals chronological order.
_STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_zone(name: str | None) -> ZoneInfo:
    """Return the IANA zone for ``name``, falling back to UTC for unknown names."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def is_valid_zone(name: str) -> bool:
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def ensure_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, tz: ZoneInfo | str) -> datetime:
    zone = tz if isinstance(tz, ZoneInfo) else resolve_zone(tz)
    return ensure_utc(instant).astimezone(zone)


def to_utc(local: datetime) -> datetime:
    return ensure_utc(local)


def local_at(day: date, hh_mm: str, tz: ZoneInfo) -> datetime:
    """Wall-clock ``hh_mm`` on ``day`` in ``tz``."""
    hour, minute = parse_hhmm(hh_mm)
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def parse_hhmm(value: str) -> tuple[int, int]:
    match = _HHMM.match(value)
    if not match:
        raise ValueError(f"Invalid time of day (expected HH:MM): {value!r}")
    return int(match.group(1)), int(match.group(2))


def is_valid_hhmm(value: str) -> bool:
    return bool(_HHMM.match(value))


def minutes_of_day(local: datetime) -> int:
    return local.hour * 60 + local.minute


def hhmm_to_minutes(value: str) -> int:
    hour, minute = parse_hhmm(value)
    return hour * 60 + minute


def format_instant(instant: datetime) -> str:
    return ensure_utc(instant).strftime(_STORAGE_FORMAT)


def parse_instant(text: str) -> datetime:
    try:
        return datetime.strptime(text, _STORAGE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        # Accept any ISO-8601 input (e.g. from event payloads)
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))

"""Reminder time computation: frequency stepping, sleep-cycle and quiet-hour shifts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from nudge.infrastructure.clock import (
    ensure_utc,
    hhmm_to_minutes,
    local_at,
    minutes_of_day,
    resolve_zone,
    to_local,
    to_utc,
)
from nudge.profiles.types import UserSchedulingProfile

PRE_START_LEAD = timedelta(hours=1)

KIND_PRE_START = "pre_start"
KIND_START_NOW = "start_now"
KIND_FREQUENCY = "frequency"
KIND_BASE = "base"


@dataclass(frozen=True)
class ReminderSlot:
    scheduled_at: datetime  # UTC
    reason: str
    kind: str


def _inside(local: datetime, start: str, end: str) -> bool:
    start_m = hhmm_to_minutes(start)
    end_m = hhmm_to_minutes(end)
    if start_m == end_m:
        return False
    t = minutes_of_day(local)
    if start_m > end_m:
        return t >= start_m or t < end_m
    return start_m <= t < end_m


def shift_out_of_window(local: datetime, start: str, end: str) -> datetime:
    """Move ``local`` to the window's end if it falls inside ``[start, end)``.

    A window whose start is later than its end wraps midnight; a candidate in
    the evening part of such a window moves to ``end`` on the next day.
    """
    if not _inside(local, start, end):
        return local

    day = local.date()
    if hhmm_to_minutes(start) > hhmm_to_minutes(end) and minutes_of_day(local) >= hhmm_to_minutes(start):
        day += timedelta(days=1)
    return local_at(day, end, local.tzinfo)  # type: ignore[arg-type]


def is_blocked(local: datetime, profile: UserSchedulingProfile) -> bool:
    """True if ``local`` falls inside the sleep window or any quiet window."""
    if _inside(local, profile.sleep_start, profile.sleep_end):
        return True
    return any(_inside(local, w.start, w.end) for w in profile.quiet_hours)


def adjust_for_sleep_and_quiet(local: datetime, profile: UserSchedulingProfile) -> tuple[datetime | None, list[str]]:
    """Apply the sleep hard block, then each quiet window, until nothing moves.

    Returns the adjusted local time and the blocks that moved it, in order.
    Passes are bounded; when the blocks together leave no free time the
    candidate is None.
    """
    applied: list[str] = []
    candidate = local
    for _ in range(len(profile.quiet_hours) + 2):
        moved = False

        shifted = shift_out_of_window(candidate, profile.sleep_start, profile.sleep_end)
        if shifted != candidate:
            applied.append("sleep")
            candidate = shifted
            moved = True

        for window in profile.quiet_hours:
            shifted = shift_out_of_window(candidate, window.start, window.end)
            if shifted != candidate:
                applied.append(f"quiet {window.start}-{window.end}")
                candidate = shifted
                moved = True

        if not moved:
            return candidate, applied

    if is_blocked(candidate, profile):
        return None, applied
    return candidate, applied


def _describe(base_reason: str, applied: list[str]) -> str:
    if not applied:
        return base_reason
    return f"{base_reason}, moved past {', '.join(applied)}"


def compute_next(
    base_time: datetime,
    profile: UserSchedulingProfile,
    deadline: datetime | None,
    is_frequency_based: bool,
) -> ReminderSlot | None:
    """Next legal reminder instant at or after ``base_time``, or None.

    ``deadline=None`` means unbounded. Returns None when the base time is
    already at/after the deadline, or when the adjusted candidate would be.
    """
    zone = resolve_zone(profile.timezone)
    base_utc = ensure_utc(base_time)
    deadline_utc = ensure_utc(deadline) if deadline is not None else None

    # Deadline checks run in UTC; same-zone local times compare by wall clock.
    if deadline_utc is not None and base_utc >= deadline_utc:
        return None

    if is_frequency_based:
        step = timedelta(minutes=profile.notification_frequency_minutes)
        candidate = to_local(base_utc + step, zone)
        base_reason = f"every {profile.notification_frequency_minutes} min"
        kind = KIND_FREQUENCY
    else:
        candidate = to_local(base_utc, zone)
        base_reason = "at base time"
        kind = KIND_BASE

    candidate, applied = adjust_for_sleep_and_quiet(candidate, profile)
    if candidate is None:
        return None

    if deadline_utc is not None and to_utc(candidate) >= deadline_utc:
        return None

    return ReminderSlot(scheduled_at=to_utc(candidate), reason=_describe(base_reason, applied), kind=kind)


def pre_start_reminders(start_time: datetime, profile: UserSchedulingProfile, now: datetime) -> list[ReminderSlot]:
    """At most one reminder announcing that a task starts soon.

    - start more than an hour away: one hour before start
    - start within the hour: at start
    - start already passed: the first frequency-based reminder from now
    """
    zone = resolve_zone(profile.timezone)
    start = ensure_utc(start_time)
    now = ensure_utc(now)
    until_start = start - now

    if until_start > PRE_START_LEAD:
        local, applied = adjust_for_sleep_and_quiet(to_local(start - PRE_START_LEAD, zone), profile)
        if local is None:
            return []
        return [ReminderSlot(to_utc(local), _describe("1h before start", applied), KIND_PRE_START)]

    if until_start > timedelta(0):
        local, applied = adjust_for_sleep_and_quiet(to_local(start, zone), profile)
        if local is None:
            return []
        return [ReminderSlot(to_utc(local), _describe("at start", applied), KIND_START_NOW)]

    slot = compute_next(now, profile, None, is_frequency_based=True)
    return [slot] if slot else []

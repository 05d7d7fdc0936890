"""Scheduling preference types, validated at the preference-update boundary."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from nudge.infrastructure.clock import is_valid_hhmm, is_valid_zone
from nudge.infrastructure.config import (
    DEFAULT_FREQUENCY_MINUTES,
    DEFAULT_SLEEP_END,
    DEFAULT_SLEEP_START,
    DEFAULT_TIMEZONE,
)


class MotivationTone(str, Enum):
    HARSH = "HARSH"
    POSITIVE = "POSITIVE"
    OPTIMISTIC = "OPTIMISTIC"
    FEAR = "FEAR"
    LOGICAL = "LOGICAL"
    NEUTRAL = "NEUTRAL"


def _check_hhmm(value: str) -> str:
    if not is_valid_hhmm(value):
        raise ValueError(f"must be HH:MM (24h), got {value!r}")
    return value


class QuietWindow(BaseModel):
    start: str  # local HH:MM
    end: str  # local HH:MM, may be earlier than start (wraps midnight)

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        return _check_hhmm(value)


class UserSchedulingProfile(BaseModel):
    user_id: str
    timezone: str = DEFAULT_TIMEZONE
    sleep_start: str = DEFAULT_SLEEP_START
    sleep_end: str = DEFAULT_SLEEP_END
    quiet_hours: list[QuietWindow] = Field(default_factory=list)
    notification_frequency_minutes: int = DEFAULT_FREQUENCY_MINUTES
    motivation_tone: MotivationTone = MotivationTone.NEUTRAL

    @field_validator("timezone")
    @classmethod
    def _zone(cls, value: str) -> str:
        if not is_valid_zone(value):
            raise ValueError(f"unknown IANA timezone {value!r}")
        return value

    @field_validator("sleep_start", "sleep_end")
    @classmethod
    def _sleep_hhmm(cls, value: str) -> str:
        return _check_hhmm(value)

    @field_validator("notification_frequency_minutes")
    @classmethod
    def _positive_frequency(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("notification frequency must be a positive number of minutes")
        return value

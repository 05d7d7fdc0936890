"""Delayed job types and the JobQueue protocol."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from nudge.infrastructure.config import JOB_ATTEMPTS, JOB_BACKOFF_S

JobState = Literal["delayed", "active", "completed", "failed"]


def job_key(notification_id: str) -> str:
    return f"notif-{notification_id}"


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = JOB_ATTEMPTS
    backoff_s: float = JOB_BACKOFF_S

    def delay_before_retry(self, retry_number: int) -> float:
        """Exponential backoff: retry 1 waits backoff_s, retry 2 waits 2x, and so on."""
        return self.backoff_s * math.pow(2, retry_number - 1)


@dataclass
class DelayedJob:
    key: str
    notification_id: str
    fire_at: float  # loop.time() at which the next attempt may start
    attempts_made: int = 0
    state: JobState = "delayed"
    last_error: str | None = None
    finished_at: float | None = None


@runtime_checkable
class JobQueue(Protocol):
    async def enqueue(self, notification_id: str, delay_s: float) -> bool: ...
    async def close(self) -> None: ...

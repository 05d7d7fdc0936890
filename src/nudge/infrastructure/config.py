"""Configuration constants, .env parsing, and timeout settings."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ; callers decide what to do with values.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


_ENV_KEYS = [
    "APP_NAME",
    "NUDGE_STORE_DIR",
    "EVENT_POLL_INTERVAL",
    "EVENT_BATCH_SIZE",
    "RECOVERY_POLL_INTERVAL",
    "WORKER_CONCURRENCY",
    "JOB_ATTEMPTS",
    "MESSAGE_TIMEOUT_S",
    "DISPATCH_TIMEOUT_S",
    "DEFAULT_TIMEZONE",
]

# Read config values from .env (process environment wins).
_env_config = read_env_file(_ENV_KEYS)


def _get(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


APP_NAME: str = _get("APP_NAME", "DreamPlanner")

# Absolute paths
PROJECT_ROOT: Path = Path.cwd()
STORE_DIR: Path = Path(_get("NUDGE_STORE_DIR", str(PROJECT_ROOT / "store"))).resolve()
DB_PATH: Path = STORE_DIR / "nudge.db"

EVENT_POLL_INTERVAL: float = float(_get("EVENT_POLL_INTERVAL", "5.0"))  # seconds
EVENT_BATCH_SIZE: int = int(_get("EVENT_BATCH_SIZE", "100"))
RECOVERY_POLL_INTERVAL: float = float(_get("RECOVERY_POLL_INTERVAL", "60.0"))
RECOVERY_BATCH_SIZE: int = 100

WORKER_CONCURRENCY: int = max(1, int(_get("WORKER_CONCURRENCY", "10")))
JOB_ATTEMPTS: int = max(1, int(_get("JOB_ATTEMPTS", "5")))
JOB_BACKOFF_S: float = 1.0  # doubles on each retry: 1s, 2s, 4s, 8s
COMPLETED_JOB_RETENTION_S: float = 3600.0

MESSAGE_TIMEOUT_S: float = float(_get("MESSAGE_TIMEOUT_S", "10.0"))
DISPATCH_TIMEOUT_S: float = float(_get("DISPATCH_TIMEOUT_S", "15.0"))

DEFAULT_SLEEP_START: str = "23:00"
DEFAULT_SLEEP_END: str = "07:00"
DEFAULT_FREQUENCY_MINUTES: int = 60


def _resolve_timezone(name: str) -> str:
    if not name:
        return "UTC"
    try:
        ZoneInfo(name)
        return name
    except (ZoneInfoNotFoundError, ValueError):
        return "UTC"


DEFAULT_TIMEZONE: str = _resolve_timezone(_get("DEFAULT_TIMEZONE", "UTC"))


class TimeoutConfig:
    """Timeouts applied to the external collaborators called by the delivery worker."""

    def __init__(
        self,
        message_timeout_s: float = MESSAGE_TIMEOUT_S,
        dispatch_timeout_s: float = DISPATCH_TIMEOUT_S,
    ) -> None:
        self.message_timeout_s = message_timeout_s
        self.dispatch_timeout_s = dispatch_timeout_s

    def total(self) -> float:
        """Upper bound on how long a single delivery may block a worker slot."""
        return self.message_timeout_s + self.dispatch_timeout_s

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from nudge.infrastructure.database import AppDatabase
from nudge.notifications.dispatcher import DispatchPayload, DispatchResult
from nudge.tasks.types import Task

# Monday, midday UTC
NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, instant: datetime) -> None:
        self.now = instant


class RecordingQueue:
    """Records enqueued jobs instead of running them."""

    def __init__(self) -> None:
        self.jobs: list[tuple[str, float]] = []
        self.fail = False
        self.closed = False

    async def enqueue(self, notification_id: str, delay_s: float) -> bool:
        if self.fail:
            raise RuntimeError("queue unavailable")
        if any(nid == notification_id for nid, _ in self.jobs):
            return False
        self.jobs.append((notification_id, delay_s))
        return True

    async def close(self) -> None:
        self.closed = True

    @property
    def ids(self) -> list[str]:
        return [nid for nid, _ in self.jobs]


class FakeDispatcher:
    def __init__(self) -> None:
        self.sent: list[DispatchPayload] = []
        self.error: str | None = None

    async def send(self, payload: DispatchPayload) -> DispatchResult:
        self.sent.append(payload)
        if self.error:
            return DispatchResult(success=False, error=self.error)
        return DispatchResult(success=True)


class FakeGenerator:
    def __init__(self) -> None:
        self.text = "You've got this!"
        self.raises: Exception | None = None
        self.delay_s = 0.0
        self.calls: list[tuple] = []

    async def generate(self, notification_type, user_tone, task_context, dream_context) -> str:
        self.calls.append((notification_type, user_tone, task_context, dream_context))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.raises:
            raise self.raises
        return self.text


@pytest.fixture
def db():
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    yield app_db
    app_db.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def make_task(db):
    """Persist a task relative to the frozen time: start in 3h, deadline in 3 days."""

    def _make(id: str = "task-1", user_id: str = "user-1", **overrides) -> Task:
        fields = {
            "id": id,
            "user_id": user_id,
            "dream_id": "dream-1",
            "title": "Write chapter one",
            "start_date": NOW + timedelta(hours=3),
            "deadline": NOW + timedelta(days=3),
        }
        fields.update(overrides)
        task = Task(**fields)
        db.task_repo.create_task(task)
        return task

    return _make

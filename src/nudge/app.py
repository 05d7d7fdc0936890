"""Orchestrator class: composes services, wires subsystems."""

from __future__ import annotations

from pathlib import Path

from nudge.events.dispatcher import EventDispatcher, start_event_loop
from nudge.events.handlers import default_handlers
from nudge.events.repository import EventLog
from nudge.infrastructure.config import APP_NAME, DB_PATH, JOB_ATTEMPTS, JOB_BACKOFF_S, WORKER_CONCURRENCY, TimeoutConfig
from nudge.infrastructure.database import AppDatabase
from nudge.infrastructure.logger import logger
from nudge.infrastructure.poll_loop import PollLoop
from nudge.jobs.queue import AsyncioJobQueue
from nudge.jobs.types import RetryPolicy
from nudge.notifications.dispatcher import ChannelDispatcher, Dispatcher, LogChannel
from nudge.notifications.messages import MessageGenerator, StaticMessageGenerator
from nudge.notifications.recovery import RecoverySweep, start_recovery_loop
from nudge.notifications.worker import DeliveryWorker
from nudge.scheduling.service import SchedulingService
from nudge.tasks.service import TaskService


class Orchestrator:
    """Composes all services and manages the application lifecycle."""

    def __init__(
        self,
        db: AppDatabase | None = None,
        dispatcher: Dispatcher | None = None,
        message_generator: MessageGenerator | None = None,
    ) -> None:
        self._db = db or AppDatabase()
        self._dispatcher = dispatcher or ChannelDispatcher([LogChannel()])
        self._message_generator = message_generator or StaticMessageGenerator()
        self._queue = AsyncioJobQueue(
            concurrency=WORKER_CONCURRENCY,
            policy=RetryPolicy(attempts=JOB_ATTEMPTS, backoff_s=JOB_BACKOFF_S),
        )
        self._event_handle: PollLoop | None = None
        self._recovery_handle: PollLoop | None = None
        self._running = False

        self.scheduling: SchedulingService | None = None
        self.tasks: TaskService | None = None
        self.worker: DeliveryWorker | None = None
        self.events: EventDispatcher | None = None
        self.recovery: RecoverySweep | None = None

    @property
    def db(self) -> AppDatabase:
        return self._db

    @property
    def queue(self) -> AsyncioJobQueue:
        return self._queue

    @property
    def running(self) -> bool:
        return self._running

    def wire(self, db_path: Path | None = None) -> None:
        """Open the database and construct every service. Nothing is started."""
        if not self._db.is_open:
            self._db.init(db_path or DB_PATH)

        self.scheduling = SchedulingService(
            self._db.notification_repo, self._db.task_repo, self._db.profile_repo, self._queue
        )
        self.tasks = TaskService(self._db.task_repo, EventLog(self._db.event_repo), self.scheduling)
        self.worker = DeliveryWorker(
            notification_repo=self._db.notification_repo,
            task_repo=self._db.task_repo,
            profile_repo=self._db.profile_repo,
            scheduling_service=self.scheduling,
            message_generator=self._message_generator,
            dispatcher=self._dispatcher,
            timeouts=TimeoutConfig(),
        )
        self._queue.set_handler(self.worker.process)
        self._queue.set_on_exhausted(self.worker.on_job_exhausted)

        self.events = EventDispatcher(self._db.event_repo, default_handlers(self.scheduling, self._db.task_repo))
        self.recovery = RecoverySweep(
            self._db.notification_repo, self.scheduling, self._queue, max_attempts=self._queue.policy.attempts
        )

    async def start(self, db_path: Path | None = None) -> None:
        """Initialize all services and start the loops."""
        logger.info(f"Starting {APP_NAME} notifications...")
        self.wire(db_path)
        assert self.events is not None and self.recovery is not None

        # Jobs lost with the previous process are rebuilt from the table first
        await self.recovery.recover_on_startup()

        self._event_handle = start_event_loop(self.events)
        self._recovery_handle = start_recovery_loop(self.recovery)

        self._running = True
        logger.info(f"{APP_NAME} notifications started")

    async def shutdown(self) -> None:
        """Gracefully shut down all services."""
        logger.info(f"Shutting down {APP_NAME} notifications...")
        self._running = False

        if self._event_handle:
            await self._event_handle.stop()
            self._event_handle = None
        if self._recovery_handle:
            await self._recovery_handle.stop()
            self._recovery_handle = None

        await self._queue.close()
        self._db.close()

        logger.info(f"{APP_NAME} notifications shut down complete")

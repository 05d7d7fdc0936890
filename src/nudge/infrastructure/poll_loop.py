"""Shared async polling loop abstraction."""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from nudge.infrastructure.logger import logger


class PollLoop:
    """An async polling loop that calls a function at regular intervals.

    Stopping never interrupts an iteration in progress: ``stop()`` wakes the
    loop out of its sleep and waits for the running call to return.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None
        self._stopped = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop as a background task."""
        self._stopped = False
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"poll:{self._name}")
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    async def stop(self) -> None:
        """Stop the polling loop after the current iteration finishes."""
        self._stopped = True
        if self._wake:
            self._wake.set()
        task, self._task = self._task, None
        if task:
            await task
        logger.info(f"{self._name} loop stopped")

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                await self._fn()
            except Exception:
                logger.exception(f"Error in {self._name} loop")
            if self._stopped:
                break
            assert self._wake is not None
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass


def start_poll_loop(name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop

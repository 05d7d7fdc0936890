"""Tests for the polling loop."""

import asyncio

import pytest

from nudge.infrastructure.poll_loop import PollLoop, start_poll_loop


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_calls_function_repeatedly(self):
        calls = 0

        async def fn() -> None:
            nonlocal calls
            calls += 1

        loop = start_poll_loop("test", 0.01, fn)
        await asyncio.sleep(0.1)
        await loop.stop()
        assert calls >= 2

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_loop(self):
        calls = 0

        async def fn() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        loop = start_poll_loop("failing", 0.01, fn)
        await asyncio.sleep(0.1)
        assert loop.running
        await loop.stop()
        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_wakes_long_sleep(self):
        async def fn() -> None:
            pass

        loop = start_poll_loop("slow", 3600, fn)
        await asyncio.sleep(0.01)
        await asyncio.wait_for(loop.stop(), timeout=1)
        assert not loop.running

    @pytest.mark.asyncio
    async def test_stop_waits_for_current_iteration(self):
        finished = asyncio.Event()

        async def fn() -> None:
            await asyncio.sleep(0.05)
            finished.set()

        loop = PollLoop("busy", 3600, fn)
        loop.start()
        await asyncio.sleep(0.01)
        await loop.stop()
        assert finished.is_set()

"""Unit tests for calendar_lite.core.async_utils."""

import asyncio
import datetime

import pytest

from calendar_lite.core.async_utils import (
    BackgroundTaskSet,
    cancel_and_wait,
    maybe_await,
    sleep_until,
)

pytestmark = pytest.mark.unit


class TestBackgroundTaskSet:
    @pytest.mark.asyncio
    async def test_tracks_and_forgets_finished_tasks(self):
        tasks = BackgroundTaskSet(name="test")
        done = asyncio.Event()

        async def work():
            await done.wait()

        tasks.spawn(work(), name="work")
        assert len(tasks) == 1

        done.set()
        await tasks.wait_idle(timeout=1.0)
        await asyncio.sleep(0)

        assert len(tasks) == 0
        assert tasks.failure_count == 0

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self, caplog):
        tasks = BackgroundTaskSet(name="test")

        async def boom():
            raise RuntimeError("boom")

        tasks.spawn(boom(), name="boom")
        await tasks.wait_idle(timeout=1.0)
        await asyncio.sleep(0)

        assert tasks.failure_count == 1
        assert "boom" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTaskSet(name="test")
        tasks.spawn(asyncio.sleep(60))
        tasks.spawn(asyncio.sleep(60))

        cancelled = await tasks.cancel_all()

        assert cancelled == 2
        assert len(tasks) == 0
        assert tasks.failure_count == 0

    @pytest.mark.asyncio
    async def test_wait_idle_without_tasks_returns(self):
        await BackgroundTaskSet().wait_idle()

    def test_spawn_requires_running_loop(self):
        tasks = BackgroundTaskSet()

        async def noop():
            return None

        coro = noop()
        try:
            with pytest.raises(RuntimeError):
                tasks.spawn(coro)
        finally:
            coro.close()


class TestCancelAndWait:
    @pytest.mark.asyncio
    async def test_cancels_running_task(self):
        task = asyncio.create_task(asyncio.sleep(60))

        await cancel_and_wait(task)

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_none_and_finished_tasks_are_ignored(self):
        task = asyncio.create_task(asyncio.sleep(0))
        await task

        await cancel_and_wait(None)
        await cancel_and_wait(task)

        assert not task.cancelled()


class TestSleepUntil:
    @pytest.mark.asyncio
    async def test_returns_immediately_for_past_deadline(self):
        now = datetime.datetime(2025, 3, 10, 15, 0, tzinfo=datetime.UTC)

        await asyncio.wait_for(
            sleep_until(now - datetime.timedelta(seconds=5), lambda: now), timeout=0.5
        )

    @pytest.mark.asyncio
    async def test_rechecks_clock_between_steps(self):
        """A clock jump (e.g. resume from suspend) ends the wait early."""
        now = [datetime.datetime(2025, 3, 10, 15, 0, tzinfo=datetime.UTC)]
        deadline = now[0] + datetime.timedelta(hours=1)

        waiter = asyncio.create_task(sleep_until(deadline, lambda: now[0], max_step=0.01))
        await asyncio.sleep(0.03)
        assert not waiter.done()

        now[0] = deadline
        await asyncio.wait_for(waiter, timeout=0.5)


class TestMaybeAwait:
    @pytest.mark.asyncio
    async def test_plain_value(self):
        assert await maybe_await(3) == 3

    @pytest.mark.asyncio
    async def test_awaitable(self):
        async def value():
            return "ok"

        assert await maybe_await(value()) == "ok"

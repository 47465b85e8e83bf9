"""Async task helpers for calendar_lite.

Timers, the dispatcher poll loop and alert delivery all run as asyncio tasks
owned by an object with an explicit lifecycle. This module holds the shared
pieces:

- ``BackgroundTaskSet``: fire-and-forget tasks that are still tracked, so
  exceptions get logged and shutdown can cancel whatever is left.
- ``cancel_and_wait``: cancel a task and wait for it to unwind.
- ``sleep_until``: clock-driven sleep used by reminder timers.

Usage Example:
    ```python
    from calendar_lite.core.async_utils import BackgroundTaskSet

    tasks = BackgroundTaskSet(name="alerts")
    tasks.spawn(sink.deliver(alert), name=f"alert-{alert.event_id}")
    ...
    await tasks.cancel_all()
    ```
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from datetime import datetime
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound for a single sleep step; long waits are re-evaluated against the clock
MAX_SLEEP_STEP_SECONDS = 60.0


class BackgroundTaskSet:
    """Tracks fire-and-forget tasks for one owner.

    Tasks remove themselves when done. A task that ends with an exception has
    it logged rather than surfacing as "Task exception was never retrieved".
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._failures = 0

    def spawn(
        self, coro: Coroutine[Any, Any, T], name: Optional[str] = None
    ) -> asyncio.Task[T]:
        """Schedule ``coro`` on the running loop and track it.

        Raises:
            RuntimeError: if called without a running event loop
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failures += 1
            logger.error(
                "%s task %s failed: %s",
                self.name,
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def failure_count(self) -> int:
        return self._failures

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for the currently tracked tasks to finish (or ``timeout``)."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    async def cancel_all(self) -> int:
        """Cancel every tracked task and wait for them to unwind.

        Returns:
            Number of tasks that were cancelled
        """
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        if pending:
            logger.debug("%s: cancelled %d pending task(s)", self.name, len(pending))
        return len(pending)


async def cancel_and_wait(task: Optional[asyncio.Task[Any]]) -> None:
    """Cancel ``task`` (if still running) and wait for it to finish."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def sleep_until(
    deadline: datetime,
    clock: Callable[[], datetime],
    max_step: float = MAX_SLEEP_STEP_SECONDS,
) -> None:
    """Sleep until ``clock()`` reaches ``deadline``.

    Sleeps in steps of at most ``max_step`` seconds and re-reads the clock
    after each, so a host suspend or a clock change shortens the wait instead
    of leaving the timer sleeping past its deadline.
    """
    while True:
        remaining = (deadline - clock()).total_seconds()
        if remaining <= 0:
            return
        await asyncio.sleep(min(remaining, max_step))


async def maybe_await(result: Any) -> Any:
    """Await ``result`` when it is awaitable, otherwise return it unchanged."""
    if isinstance(result, Awaitable):
        return await result
    return result

"""Cancellable timers on the running asyncio loop.

The poll loop, the reconnect delay and the keepalive interval all run as a
ScheduledTask, so each owner holds exactly one handle per timer and cancels
it the same way.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable

from .logging_config import get_logger

logger = get_logger(__name__)


Callback = Callable[..., Any]  # plain function or coroutine function


async def invoke(callback: Callback, *args: Any) -> None:
    """Call callback and await its result when it returns an awaitable."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ScheduledTask:
    """Handle around a single asyncio task that can be cancelled any time."""

    def __init__(self, coro: Awaitable[None], name: str | None = None):
        self._task = asyncio.get_running_loop().create_task(coro, name=name)
        self._task.add_done_callback(self._report_failure)

    @property
    def active(self) -> bool:
        """True until the task finishes or is cancelled."""
        return not self._task.done()

    def is_current(self) -> bool:
        """True when called from inside this task."""
        return asyncio.current_task() is self._task

    def cancel(self) -> None:
        """Cancel the task. Safe to call repeatedly."""
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the task is finished or cancelled, without raising."""
        await asyncio.wait({self._task})

    @staticmethod
    def _report_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Scheduled task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )


def call_later(
    delay_ms: float, callback: Callback, name: str | None = None
) -> ScheduledTask:
    """Run callback once after delay_ms."""

    async def _run() -> None:
        await asyncio.sleep(delay_ms / 1000)
        await invoke(callback)

    return ScheduledTask(_run(), name=name)


def call_every(
    interval_ms: float,
    callback: Callback,
    immediate: bool = False,
    name: str | None = None,
) -> ScheduledTask:
    """
    Run callback repeatedly, interval_ms after each run settles.

    Args:
        interval_ms: Delay between the end of one run and the start of the next.
        callback: Function or coroutine function taking no arguments.
        immediate: Run once right away instead of waiting a full interval first.
        name: Optional task name for debugging.
    """

    async def _run() -> None:
        if not immediate:
            await asyncio.sleep(interval_ms / 1000)
        while True:
            await invoke(callback)
            await asyncio.sleep(interval_ms / 1000)

    return ScheduledTask(_run(), name=name)


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, for measuring ages and latencies."""
    return time.monotonic() * 1000


async def notify(callback: Callback | None, *args: Any) -> None:
    """Invoke a user callback, logging anything it raises."""
    if callback is None:
        return
    try:
        await invoke(callback, *args)
    except Exception as e:
        logger.error("Callback %r failed: %s", callback, e, exc_info=True)

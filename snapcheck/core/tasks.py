"""
Single-flight FIFO execution of deferred work.

Only the active tab of a window can be captured, so every screenshot in the
process, whichever test or crawl tab it belongs to, goes through one
SequentialTaskRunner.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """A coroutine function bound to its arguments, run later."""

    def __init__(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
        self.func = func
        self.args = args
        self.kwargs = kwargs

    async def run(self) -> Any:
        return await self.func(*self.args, **self.kwargs)

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", repr(self.func))
        return f"ScheduledTask({name})"


class SequentialTaskRunner:
    """
    Runs submitted tasks one at a time in submission order.

    Each task is chained after the current tail. A task's result or error is
    delivered only through the future returned to its submitter; a failed
    task never stops the ones queued behind it.
    """

    def __init__(self) -> None:
        self._tail: Optional[asyncio.Future] = None
        self._submitted = 0

    def add_task(self, task: ScheduledTask) -> asyncio.Future:
        """
        Queue a task behind every task submitted so far.

        Args:
            task: Task to run

        Returns:
            Future resolving to the task's result (or raising its error)
        """
        previous = self._tail
        self._submitted += 1
        position = self._submitted

        async def _chained() -> Any:
            if previous is not None:
                # Waiting does not propagate the previous task's error.
                await asyncio.wait([previous])
            logger.debug(f"Running task #{position}: {task!r}")
            return await task.run()

        self._tail = asyncio.ensure_future(_chained())
        return self._tail

    async def run(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Queue ``func(*args, **kwargs)`` and wait for its result."""
        return await self.add_task(ScheduledTask(func, *args, **kwargs))

    @property
    def is_idle(self) -> bool:
        return self._tail is None or self._tail.done()

"""Tracked background tasks for fire-and-forget refreshes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Keeps strong references to scheduled tasks and logs their failures.

    One group per owner, so tests and separate scanners never share state.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def schedule[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Schedule an async coroutine on the running event loop."""
        task: asyncio.Task[T] = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._discard_task)
        task.add_done_callback(_log_exception)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait for every currently tracked task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel all tracked outstanding tasks and wait for them to unwind."""
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _discard_task(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)


def _log_exception(future: asyncio.Future[Any]) -> None:
    """Log any exception from a background task."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Unhandled exception in background task", exc_info=exc)

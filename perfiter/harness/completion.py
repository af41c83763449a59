"""Tracks work a synchronous benchmark body leaves running on the event loop.

A synchronous function returns before the callbacks or tasks it scheduled
have finished. The invoker hands each run a ``CompletionContext``; the body
schedules work through it, and the invoker awaits ``wait_for_completion()``
after the call returns to learn whether that work failed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from perfiter.common.logger import get_logger

logger = get_logger(__name__)


class CompletionContext:
    """Counts outstanding operations and remembers the first failure."""

    def __init__(self):
        self._outstanding = 0
        self._error: Optional[BaseException] = None
        self._idle: Optional[asyncio.Event] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def operation_started(self) -> None:
        self._outstanding += 1
        if self._idle is not None:
            self._idle.clear()

    def operation_completed(self, error: Optional[BaseException] = None) -> None:
        if self._outstanding == 0:
            raise RuntimeError("operation_completed called with no outstanding operations")
        if error is not None and self._error is None:
            self._error = error
        self._outstanding -= 1
        if self._outstanding == 0 and self._idle is not None:
            self._idle.set()

    def spawn(self, awaitable: Awaitable[Any]) -> "asyncio.Task[Any]":
        """Schedule ``awaitable`` on the running loop and track it."""
        task = asyncio.ensure_future(awaitable)
        self.operation_started()
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> asyncio.Handle:
        """Schedule ``callback(*args)`` on the running loop and track it."""
        loop = asyncio.get_running_loop()
        self.operation_started()

        def _run() -> None:
            try:
                callback(*args)
            except Exception as exc:
                self.operation_completed(exc)
            else:
                self.operation_completed()

        return loop.call_soon(_run)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.operation_completed(asyncio.CancelledError(f"{task.get_name()} was cancelled"))
        else:
            self.operation_completed(task.exception())

    async def wait_for_completion(self) -> Optional[BaseException]:
        """Wait until nothing is outstanding; return and clear the first failure."""
        if self._outstanding:
            if self._idle is None:
                self._idle = asyncio.Event()
            self._idle.clear()
            logger.debug(f"Waiting for {self._outstanding} outstanding operation(s)")
            await self._idle.wait()
        error, self._error = self._error, None
        return error

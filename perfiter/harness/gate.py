"""Process-wide gate serializing benchmark runs.

Test runners may dispatch tests from several threads, each with its own event
loop, so an ``asyncio.Semaphore`` (bound to a single loop) is not enough. The
gate keeps its permit under a ``threading.Lock`` and parks waiters on futures
of their own loops; acquiring suspends the task and never blocks a thread.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import Deque, Optional, Tuple

from perfiter.common.logger import get_logger

logger = get_logger(__name__)

_Waiter = Tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]


class ExecutionGate:
    """Single-permit, FIFO gate usable from any thread or event loop.

    Usage::

        async with gate:
            await run_benchmark()
    """

    def __init__(self, name: str = "benchmark"):
        self.name = name
        self._lock = threading.Lock()
        self._held = False
        self._waiters: Deque[_Waiter] = deque()

    @property
    def locked(self) -> bool:
        with self._lock:
            return self._held

    async def acquire(self) -> None:
        loop = asyncio.get_running_loop()
        with self._lock:
            if not self._held and not self._waiters:
                self._held = True
                return
            fut: asyncio.Future[None] = loop.create_future()
            self._waiters.append((loop, fut))
            queued = len(self._waiters)
        logger.debug(f"Waiting for {self.name} gate ({queued} queued)")
        try:
            await fut
        except asyncio.CancelledError:
            with self._lock:
                try:
                    self._waiters.remove((loop, fut))
                    granted = False
                except ValueError:
                    # Already dequeued: the permit was handed to us.
                    granted = fut.done() and not fut.cancelled()
            if granted:
                self.release()
            raise

    def release(self) -> None:
        with self._lock:
            if not self._held:
                raise RuntimeError(f"{self.name} gate released without being held")
            waiter = self._pop_waiter()
            if waiter is None:
                self._held = False
                return
        loop, fut = waiter
        # The permit stays held and passes to the waiter.
        loop.call_soon_threadsafe(self._grant, fut)

    def _pop_waiter(self) -> Optional[_Waiter]:
        while self._waiters:
            loop, fut = self._waiters.popleft()
            if not fut.done() and not loop.is_closed():
                return loop, fut
        return None

    def _grant(self, fut: "asyncio.Future[None]") -> None:
        if fut.cancelled():
            # Cancelled between hand-off and wake-up; pass the permit on.
            self.release()
        else:
            fut.set_result(None)

    async def __aenter__(self) -> ExecutionGate:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()


GLOBAL_GATE = ExecutionGate()

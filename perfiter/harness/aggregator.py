"""Failure collection and aggregate timing for one benchmark invocation."""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, List, Optional

from perfiter.common.exceptions import BenchmarkFailuresError


class FailureAggregator:
    """Collects every failure raised or reported during an invocation."""

    def __init__(self):
        self._failures: List[BaseException] = []

    @property
    def failures(self) -> List[BaseException]:
        return list(self._failures)

    @property
    def has_failures(self) -> bool:
        return bool(self._failures)

    def add(self, exc: BaseException) -> None:
        self._failures.append(exc)

    async def run_async(self, fn: Callable[[], Awaitable[Any]]) -> None:
        """Await ``fn()``, recording any exception it raises.

        Cancellation is not a failure and propagates.
        """
        try:
            await fn()
        except Exception as exc:
            self.add(exc)

    def to_exception(self) -> Optional[BaseException]:
        if not self._failures:
            return None
        if len(self._failures) == 1:
            return self._failures[0]
        return BenchmarkFailuresError(self._failures)

    def raise_if_failed(self) -> None:
        exc = self.to_exception()
        if exc is not None:
            raise exc


class ExecutionTimer:
    """Accumulates the wall time of every awaited invocation, in seconds."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self.total = 0.0

    async def aggregate(self, fn: Callable[[], Awaitable[Any]]) -> None:
        start = self._clock()
        try:
            await fn()
        finally:
            self.total += self._clock() - start

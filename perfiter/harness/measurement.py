"""Measurement boundaries inside a single benchmark iteration.

A benchmark body may mark the interval it wants measured by starting and
stopping measurement for the iteration it is running. Each iteration moves
through ``NOT_STARTED -> STARTED -> STOPPED``; any other transition is
rejected. Immediately before a measured interval begins, the tracker runs a
quiescence pass so collector pauses from earlier allocations don't land in
the measurement.
"""

from __future__ import annotations

import gc
from enum import Enum
from typing import Callable, Optional

from perfiter.benchmark.telemetry import EventSink
from perfiter.common.exceptions import InvalidMeasurementStateError
from perfiter.common.logger import get_logger

logger = get_logger(__name__)

Quiesce = Callable[[], None]


def full_collect() -> None:
    """Collect every generation, then again for objects freed by finalizers."""
    gc.collect()
    gc.collect()


def no_quiesce() -> None:
    """Stand-in that skips the collection pass."""


class MeasurementState(str, Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    STOPPED = "stopped"


class MeasurementTracker:
    """Tracks the measurement state of the current iteration of one run."""

    def __init__(
        self,
        run_id: str,
        test_name: str,
        sink: EventSink,
        quiesce: Quiesce = full_collect,
    ):
        self.run_id = run_id
        self.test_name = test_name
        self._sink = sink
        self._quiesce = quiesce
        self._current: Optional[int] = None
        self._state = MeasurementState.NOT_STARTED

    @property
    def current_iteration(self) -> Optional[int]:
        return self._current

    @property
    def state(self) -> MeasurementState:
        return self._state

    def begin(self, iteration: int) -> None:
        """Make ``iteration`` the current one, with no measurement started."""
        self._current = iteration
        self._state = MeasurementState.NOT_STARTED

    def start(self, iteration: int) -> None:
        if iteration != self._current:
            logger.debug(
                f"{self.test_name}: ignoring start_measurement({iteration}), current iteration is {self._current}"
            )
            return
        if self._state is not MeasurementState.NOT_STARTED:
            raise InvalidMeasurementStateError(
                f"start_measurement already called for iteration {iteration}",
                iteration=iteration,
                state=self._state.value,
            )
        self._quiesce()
        self._state = MeasurementState.STARTED
        self._sink.iteration_start(self.run_id, self.test_name, iteration)

    def stop(self, iteration: int, success: bool = True) -> None:
        if iteration != self._current or self._state is MeasurementState.STOPPED:
            return
        if self._state is MeasurementState.NOT_STARTED:
            raise InvalidMeasurementStateError(
                f"stop_measurement called before start_measurement for iteration {iteration}",
                iteration=iteration,
                state=self._state.value,
            )
        self._state = MeasurementState.STOPPED
        self._sink.iteration_stop(self.run_id, self.test_name, iteration, success)

    def close(self, success: bool = True) -> None:
        """Stop the current iteration if its measurement was left open."""
        if self._current is not None and self._state is MeasurementState.STARTED:
            logger.debug(f"{self.test_name}: closing open measurement for iteration {self._current}")
            self.stop(self._current, success=success)

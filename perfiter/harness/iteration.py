"""Iteration control for a single benchmark run.

The stop policy is a pair of pure functions over an immutable
``IterationState``:

* ``next_iteration(state, config, now)`` returns the index to run next, or
  ``Done(reason)`` when the run should end;
* ``advance(state, now)`` records that the current iteration finished.

``BenchmarkIterator`` builds the lazy iteration sequence on top of them and
closes any measurement a body left open before moving on.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from perfiter.benchmark.defaults import BenchmarkConfiguration
from perfiter.benchmark.models import StopReason
from perfiter.benchmark.telemetry import EventSink
from perfiter.common.exceptions import BenchmarkError
from perfiter.common.logger import get_logger
from perfiter.harness.completion import CompletionContext
from perfiter.harness.measurement import MeasurementTracker, Quiesce, full_collect

logger = get_logger(__name__)


@dataclass(frozen=True)
class IterationState:
    """Index of the next iteration and the time the overall timer started.

    The timer starts when iteration 0 completes, so ``timer_origin`` is None
    until then.
    """

    index: int = 0
    timer_origin: Optional[float] = None

    def elapsed_ms(self, now: float) -> float:
        if self.timer_origin is None:
            return 0.0
        return (now - self.timer_origin) * 1000.0


@dataclass(frozen=True)
class Done:
    reason: StopReason


def stop_reason_for(
    index: int,
    elapsed_ms: float,
    max_iterations: int,
    max_total_ms: float,
) -> Optional[StopReason]:
    """Decide whether iteration ``index`` may start; first applicable reason wins."""
    if index == 0:
        return None
    if index >= max_iterations:
        return StopReason.MAX_ITERATIONS
    # Iterations 0 and 1 always run, whatever the time budget.
    if index > 1 and elapsed_ms > max_total_ms:
        return StopReason.MAX_TIME
    return None


def next_iteration(state: IterationState, config: BenchmarkConfiguration, now: float) -> Union[int, Done]:
    reason = stop_reason_for(
        state.index,
        state.elapsed_ms(now),
        config.max_iterations,
        config.max_total_milliseconds,
    )
    if reason is not None:
        return Done(reason)
    return state.index


def advance(state: IterationState, now: float) -> IterationState:
    origin = now if state.index == 0 else state.timer_origin
    return IterationState(index=state.index + 1, timer_origin=origin)


class Iteration:
    """Handle a benchmark body uses to delimit its measured interval."""

    def __init__(self, index: int, iterator: BenchmarkIterator):
        self.index = index
        self._iterator = iterator

    @property
    def completion(self) -> CompletionContext:
        return self._iterator.completion

    def start_measurement(self) -> None:
        self._iterator.start_measurement(self.index)

    def stop_measurement(self) -> None:
        self._iterator.stop_measurement(self.index)

    @contextmanager
    def measure(self) -> Iterator[Iteration]:
        """Measure the body of the ``with`` block.

        If the block raises, the iterator closes the measurement when the
        iteration ends.
        """
        self.start_measurement()
        yield self
        self.stop_measurement()

    def __repr__(self) -> str:
        return f"Iteration(index={self.index})"


class BenchmarkIterator:
    """Produces the iterations of one run and records why the sequence ended."""

    def __init__(
        self,
        test_name: str,
        config: BenchmarkConfiguration,
        sink: EventSink,
        completion: Optional[CompletionContext] = None,
        quiesce: Quiesce = full_collect,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.test_name = test_name
        self.config = config
        self.completion = completion if completion is not None else CompletionContext()
        self.tracker = MeasurementTracker(config.run_id, test_name, sink, quiesce)
        self.stop_reason: Optional[StopReason] = None
        self.iterations_entered = 0
        self.current: Optional[Iteration] = None
        self._clock = clock

    def iterations(self) -> Iterator[Iteration]:
        state = IterationState()
        while True:
            step = next_iteration(state, self.config, self._clock())
            if isinstance(step, Done):
                self.stop_reason = step.reason
                logger.debug(f"{self.test_name}: stopping before iteration {state.index} ({step.reason.value})")
                return
            self.tracker.begin(step)
            self.current = Iteration(step, self)
            self.iterations_entered = step + 1
            try:
                yield self.current
            except GeneratorExit:
                # Sequence abandoned because the body failed.
                self.tracker.close(success=False)
                raise
            self.tracker.close()
            state = advance(state, self._clock())

    def start_measurement(self, iteration: int) -> None:
        self.tracker.start(iteration)

    def stop_measurement(self, iteration: int) -> None:
        self.tracker.stop(iteration)

    @contextmanager
    def activate(self) -> Iterator[BenchmarkIterator]:
        """Expose this iterator to ``current_iteration()`` for the duration of the block."""
        token = _active_iterator.set(self)
        try:
            yield self
        finally:
            _active_iterator.reset(token)


_active_iterator: ContextVar[Optional[BenchmarkIterator]] = ContextVar("perfiter_active_iterator", default=None)


def _require_active() -> BenchmarkIterator:
    iterator = _active_iterator.get()
    if iterator is None:
        raise BenchmarkError("No benchmark run is active in this context")
    return iterator


def current_iteration() -> Iteration:
    """Return the iteration the running benchmark body is in."""
    iterator = _require_active()
    if iterator.current is None:
        raise BenchmarkError(f"{iterator.test_name} has not entered an iteration yet")
    return iterator.current


def start_measurement(iteration: int) -> None:
    _require_active().start_measurement(iteration)


def stop_measurement(iteration: int) -> None:
    _require_active().stop_measurement(iteration)

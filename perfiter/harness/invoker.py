"""Runs one benchmark function to completion under the iteration controller.

The invoker holds the global execution gate for the whole run, calls the
function once per iteration, awaits whatever it returns (or the work it left
on the completion context), folds every failure into the aggregator and
emits the benchmark start/stop telemetry.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Optional, Sequence

from perfiter.benchmark.defaults import BenchmarkConfiguration, get_configuration
from perfiter.benchmark.models import BenchmarkRunSummary, StopReason
from perfiter.benchmark.telemetry import EventSink, LoggingEventSink
from perfiter.common.exceptions import ArgumentCountMismatchError
from perfiter.common.logger import get_logger, log_benchmark_complete, log_benchmark_error, log_benchmark_start
from perfiter.harness.aggregator import ExecutionTimer, FailureAggregator
from perfiter.harness.completion import CompletionContext
from perfiter.harness.gate import GLOBAL_GATE, ExecutionGate
from perfiter.harness.iteration import BenchmarkIterator, Iteration
from perfiter.harness.measurement import Quiesce, full_collect

logger = get_logger(__name__)

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def display_name_for(method: Callable[..., Any]) -> str:
    module = getattr(method, "__module__", None)
    qualname = getattr(method, "__qualname__", None) or repr(method)
    return f"{module}.{qualname}" if module else qualname


def check_argument_count(method: Callable[..., Any], arguments: Sequence[Any]) -> Optional[ArgumentCountMismatchError]:
    """Return the mismatch error if ``arguments`` can't be bound positionally to ``method``."""
    try:
        signature = inspect.signature(method)
    except (TypeError, ValueError):
        # Builtins without signature metadata; let the call itself decide.
        return None
    positional = [p for p in signature.parameters.values() if p.kind in _POSITIONAL]
    required = sum(1 for p in positional if p.default is inspect.Parameter.empty)
    variadic = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in signature.parameters.values())
    # Arguments are bound positionally only, so required keyword-only parameters can never be filled.
    keyword_only = sum(
        1 for p in signature.parameters.values()
        if p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is inspect.Parameter.empty
    )
    provided = len(arguments)
    if keyword_only:
        return ArgumentCountMismatchError(required + keyword_only, provided)
    if provided < required:
        return ArgumentCountMismatchError(required, provided)
    if provided > len(positional) and not variadic:
        return ArgumentCountMismatchError(len(positional), provided)
    return None


class BenchmarkInvoker:
    """Drives a single benchmark run.

    Example::

        def test_sort():
            data = list(range(10_000, 0, -1))
            iteration = perfiter.current_iteration()
            with iteration.measure():
                sorted(data)

        elapsed = BenchmarkInvoker(test_sort).invoke_sync()
    """

    def __init__(
        self,
        method: Callable[..., Any],
        arguments: Sequence[Any] = (),
        display_name: Optional[str] = None,
        config: Optional[BenchmarkConfiguration] = None,
        sink: Optional[EventSink] = None,
        aggregator: Optional[FailureAggregator] = None,
        timer: Optional[ExecutionTimer] = None,
        quiesce: Quiesce = full_collect,
        gate: Optional[ExecutionGate] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.method = method
        self.arguments = tuple(arguments)
        self.display_name = display_name or display_name_for(method)
        self.config = config or get_configuration()
        self.sink = sink or LoggingEventSink()
        self.aggregator = aggregator or FailureAggregator()
        self.timer = timer or ExecutionTimer()
        self.gate = gate or GLOBAL_GATE
        self.stop_reason: Optional[StopReason] = None
        self.iterations_run = 0
        self._quiesce = quiesce
        self._clock = clock

    async def invoke(self) -> float:
        """Run the benchmark and return the aggregate elapsed seconds."""
        async with self.gate:
            completion = CompletionContext()
            await self.aggregator.run_async(
                lambda: self.timer.aggregate(lambda: self._run(completion))
            )
        return self.timer.total

    def invoke_sync(self) -> float:
        return asyncio.run(self.invoke())

    def summary(self) -> BenchmarkRunSummary:
        return BenchmarkRunSummary(
            run_id=self.config.run_id,
            test_name=self.display_name,
            stop_reason=self.stop_reason,
            iterations=self.iterations_run,
            elapsed_seconds=self.timer.total,
            errors=[f"{type(exc).__name__}: {exc}" for exc in self.aggregator.failures],
        )

    async def _run(self, completion: CompletionContext) -> None:
        mismatch = check_argument_count(self.method, self.arguments)
        if mismatch is not None:
            log_benchmark_error(logger, self.display_name, str(mismatch), self.config.run_id)
            self.aggregator.add(mismatch)
            return
        await self._iterate(completion)

    async def _iterate(self, completion: CompletionContext) -> None:
        run_id = self.config.run_id
        log_benchmark_start(logger, self.display_name, run_id)
        self.sink.benchmark_start(run_id, self.display_name)

        iterator = BenchmarkIterator(
            self.display_name,
            self.config,
            self.sink,
            completion=completion,
            quiesce=self._quiesce,
            clock=self._clock,
        )
        succeeded = False
        try:
            with iterator.activate():
                succeeded = await self._drive(iterator)
        finally:
            if succeeded and iterator.stop_reason is not None:
                self.stop_reason = iterator.stop_reason
            else:
                self.stop_reason = StopReason.TEST_FAILED
            self.iterations_run = iterator.iterations_entered
            self.sink.benchmark_stop(run_id, self.display_name, self.stop_reason)
        log_benchmark_complete(logger, self.display_name, self.stop_reason.value, self.iterations_run, run_id)

    async def _drive(self, iterator: BenchmarkIterator) -> bool:
        sequence = iterator.iterations()
        try:
            for iteration in sequence:
                if not await self._call_once(iteration):
                    return False
            return True
        finally:
            sequence.close()

    async def _call_once(self, iteration: Iteration) -> bool:
        error: Optional[BaseException]
        try:
            result = self.method(*self.arguments)
            if inspect.isawaitable(result):
                await result
            error = await iteration.completion.wait_for_completion()
        except Exception as exc:
            error = exc
        if error is None:
            return True
        log_benchmark_error(
            logger,
            self.display_name,
            f"iteration {iteration.index}: {type(error).__name__}: {error}",
            self.config.run_id,
        )
        self.aggregator.add(error)
        return False

"""Telemetry sinks receiving benchmark start/stop boundaries.

The engine reports four boundaries per run: benchmark start, iteration start,
iteration stop and benchmark stop. Any object implementing ``EventSink`` can
receive them; the sinks here log, record in memory, or append JSON Lines.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, TextIO, Union, runtime_checkable

from perfiter.benchmark.models import BenchmarkEvent, StopReason
from perfiter.common.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class EventSink(Protocol):
    """Receiver of benchmark telemetry boundaries."""

    def benchmark_start(self, run_id: str, test_name: str) -> None:
        ...

    def iteration_start(self, run_id: str, test_name: str, iteration: int) -> None:
        ...

    def iteration_stop(self, run_id: str, test_name: str, iteration: int, success: bool) -> None:
        ...

    def benchmark_stop(self, run_id: str, test_name: str, stop_reason: StopReason) -> None:
        ...


class _ModelSink:
    """Base for sinks that turn every boundary into a BenchmarkEvent."""

    def benchmark_start(self, run_id: str, test_name: str) -> None:
        self.emit(BenchmarkEvent(kind="benchmark_start", run_id=run_id, test_name=test_name))

    def iteration_start(self, run_id: str, test_name: str, iteration: int) -> None:
        self.emit(BenchmarkEvent(kind="iteration_start", run_id=run_id, test_name=test_name, iteration=iteration))

    def iteration_stop(self, run_id: str, test_name: str, iteration: int, success: bool) -> None:
        self.emit(BenchmarkEvent(
            kind="iteration_stop", run_id=run_id, test_name=test_name, iteration=iteration, success=success,
        ))

    def benchmark_stop(self, run_id: str, test_name: str, stop_reason: StopReason) -> None:
        self.emit(BenchmarkEvent(
            kind="benchmark_stop", run_id=run_id, test_name=test_name, stop_reason=stop_reason,
        ))

    def emit(self, event: BenchmarkEvent) -> None:
        raise NotImplementedError


class LoggingEventSink:
    """Writes every boundary to a logger; iteration events go to DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def benchmark_start(self, run_id: str, test_name: str) -> None:
        self._log.info(f"[{run_id}] benchmark start: {test_name}")

    def iteration_start(self, run_id: str, test_name: str, iteration: int) -> None:
        self._log.debug(f"[{run_id}] iteration {iteration} start: {test_name}")

    def iteration_stop(self, run_id: str, test_name: str, iteration: int, success: bool) -> None:
        self._log.debug(f"[{run_id}] iteration {iteration} stop: {test_name} (success={success})")

    def benchmark_stop(self, run_id: str, test_name: str, stop_reason: StopReason) -> None:
        self._log.info(f"[{run_id}] benchmark stop: {test_name} ({StopReason(stop_reason).value})")


class RecordingEventSink(_ModelSink):
    """Keeps events in memory, in emission order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[BenchmarkEvent] = []

    def emit(self, event: BenchmarkEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[BenchmarkEvent]:
        with self._lock:
            return list(self._events)

    def events_for(self, test_name: str) -> List[BenchmarkEvent]:
        return [event for event in self.events if event.test_name == test_name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class JsonLinesEventSink(_ModelSink):
    """Appends one JSON document per event to a file.

    The file stays open between events and each line is flushed as it is
    written; call ``close()`` when the session ends.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._handle: Optional[TextIO] = None

    def emit(self, event: BenchmarkEvent) -> None:
        line = event.model_dump_json()
        with self._lock:
            if self._handle is None:
                self._handle = self.path.open("a", encoding="utf-8")
            self._handle.write(line + "\n")
            self._handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def read_events(self) -> List[BenchmarkEvent]:
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [BenchmarkEvent.model_validate_json(line) for line in lines if line.strip()]


class CompositeEventSink:
    """Fans every boundary out to several sinks, in order.

    Each boundary becomes a single ``BenchmarkEvent``, so every model-based
    sink receives the same timestamp.
    """

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def _fan_out(self, event: BenchmarkEvent, notify: Callable[[EventSink], None]) -> None:
        for sink in self.sinks:
            if isinstance(sink, _ModelSink):
                sink.emit(event)
            else:
                notify(sink)

    def benchmark_start(self, run_id: str, test_name: str) -> None:
        event = BenchmarkEvent(kind="benchmark_start", run_id=run_id, test_name=test_name)
        self._fan_out(event, lambda sink: sink.benchmark_start(run_id, test_name))

    def iteration_start(self, run_id: str, test_name: str, iteration: int) -> None:
        event = BenchmarkEvent(kind="iteration_start", run_id=run_id, test_name=test_name, iteration=iteration)
        self._fan_out(event, lambda sink: sink.iteration_start(run_id, test_name, iteration))

    def iteration_stop(self, run_id: str, test_name: str, iteration: int, success: bool) -> None:
        event = BenchmarkEvent(
            kind="iteration_stop", run_id=run_id, test_name=test_name, iteration=iteration, success=success,
        )
        self._fan_out(event, lambda sink: sink.iteration_stop(run_id, test_name, iteration, success))

    def benchmark_stop(self, run_id: str, test_name: str, stop_reason: StopReason) -> None:
        event = BenchmarkEvent(kind="benchmark_stop", run_id=run_id, test_name=test_name, stop_reason=stop_reason)
        self._fan_out(event, lambda sink: sink.benchmark_stop(run_id, test_name, stop_reason))

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()

"""pytest integration: run ``@pytest.mark.perf`` tests as iterated benchmarks.

Enable with ``-p perfiter.pytest_plugin`` or ``pytest_plugins = ["perfiter.pytest_plugin"]``.

Marked tests are invoked repeatedly through ``BenchmarkInvoker`` with their
resolved fixture values. The marker accepts per-test limits::

    @pytest.mark.perf(max_iterations=50, max_time_ms=500)
    def test_lookup(index):
        ...
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from perfiter.benchmark.defaults import BenchmarkConfiguration, set_configuration
from perfiter.benchmark.models import BenchmarkRunSummary
from perfiter.benchmark.telemetry import (
    CompositeEventSink,
    EventSink,
    JsonLinesEventSink,
    LoggingEventSink,
    RecordingEventSink,
)
from perfiter.common.logger import get_logger
from perfiter.harness.invoker import BenchmarkInvoker

logger = get_logger(__name__)

MARKER = "perf"


@dataclass
class PerfSession:
    configuration: BenchmarkConfiguration
    sink: CompositeEventSink
    recorder: RecordingEventSink
    summaries: List[BenchmarkRunSummary] = field(default_factory=list)


_SESSION_KEY = pytest.StashKey[PerfSession]()


def pytest_addoption(parser):
    group = parser.getgroup("perfiter", "iterated benchmark execution")
    group.addoption(
        "--perf-run-id",
        default=None,
        help="Run identifier attached to benchmark telemetry (default: PERFITER_RUN_ID or a random id)",
    )
    group.addoption(
        "--perf-max-iterations",
        type=int,
        default=None,
        help="Maximum iterations per benchmark (default: PERFITER_MAX_ITERATIONS or 1000)",
    )
    group.addoption(
        "--perf-max-time-ms",
        type=float,
        default=None,
        help="Time budget per benchmark in milliseconds (default: PERFITER_MAX_TOTAL_MILLISECONDS or 1000)",
    )
    group.addoption(
        "--perf-events",
        default=None,
        help="Append benchmark telemetry events to this JSON Lines file",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        f"{MARKER}(max_iterations=None, max_time_ms=None): run the test as an iterated benchmark",
    )
    configuration = BenchmarkConfiguration.from_env().replace(
        run_id=config.getoption("perf_run_id"),
        max_iterations=config.getoption("perf_max_iterations"),
        max_total_milliseconds=config.getoption("perf_max_time_ms"),
    )
    set_configuration(configuration)

    recorder = RecordingEventSink()
    sinks: List[EventSink] = [LoggingEventSink(), recorder]
    events_path = config.getoption("perf_events")
    if events_path:
        sinks.append(JsonLinesEventSink(events_path))
    config.stash[_SESSION_KEY] = PerfSession(
        configuration=configuration,
        sink=CompositeEventSink(sinks),
        recorder=recorder,
    )


def pytest_unconfigure(config):
    session = config.stash.get(_SESSION_KEY, None)
    if session is not None:
        session.sink.close()
        set_configuration(None)


def _configuration_for(item, session: PerfSession) -> BenchmarkConfiguration:
    marker = item.get_closest_marker(MARKER)
    return session.configuration.replace(
        max_iterations=marker.kwargs.get("max_iterations"),
        max_total_milliseconds=marker.kwargs.get("max_time_ms"),
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem) -> Optional[bool]:
    if pyfuncitem.get_closest_marker(MARKER) is None:
        return None
    session = pyfuncitem.config.stash[_SESSION_KEY]
    funcargs = pyfuncitem.funcargs
    arguments = [funcargs[name] for name in pyfuncitem._fixtureinfo.argnames]

    invoker = BenchmarkInvoker(
        pyfuncitem.obj,
        arguments,
        display_name=pyfuncitem.nodeid,
        config=_configuration_for(pyfuncitem, session),
        sink=session.sink,
    )
    asyncio.run(invoker.invoke())

    summary = invoker.summary()
    session.summaries.append(summary)
    pyfuncitem.user_properties.append(("perf_stop_reason", summary.stop_reason.value if summary.stop_reason else None))
    pyfuncitem.user_properties.append(("perf_iterations", summary.iterations))
    pyfuncitem.user_properties.append(("perf_elapsed_seconds", summary.elapsed_seconds))
    invoker.aggregator.raise_if_failed()
    return True


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    session = config.stash.get(_SESSION_KEY, None)
    if session is None or not session.summaries:
        return
    terminalreporter.section(f"perfiter benchmarks (run {session.configuration.run_id})")
    for summary in session.summaries:
        reason = summary.stop_reason.value if summary.stop_reason else "NotRun"
        terminalreporter.write_line(
            f"{summary.test_name}: {reason} after {summary.iterations} iteration(s), "
            f"{summary.elapsed_seconds:.3f}s"
        )

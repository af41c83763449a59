"""perfiter: run a test function as a benchmark inside the test runner.

Benchmark bodies mark the interval they want measured::

    import perfiter

    @pytest.mark.perf
    def test_parse(payload):
        iteration = perfiter.current_iteration()
        document = prepare(payload)
        with iteration.measure():
            parse(document)
"""

from perfiter.benchmark.defaults import BenchmarkConfiguration, get_configuration, set_configuration
from perfiter.benchmark.models import BenchmarkEvent, BenchmarkRunSummary, StopReason
from perfiter.common.exceptions import (
    ArgumentCountMismatchError,
    BenchmarkError,
    ConfigurationError,
    InvalidMeasurementStateError,
)
from perfiter.harness.completion import CompletionContext
from perfiter.harness.gate import GLOBAL_GATE, ExecutionGate
from perfiter.harness.invoker import BenchmarkInvoker
from perfiter.harness.iteration import Iteration, current_iteration, start_measurement, stop_measurement

__version__ = "0.1.0"

__all__ = [
    "ArgumentCountMismatchError",
    "BenchmarkConfiguration",
    "BenchmarkError",
    "BenchmarkEvent",
    "BenchmarkInvoker",
    "BenchmarkRunSummary",
    "CompletionContext",
    "ConfigurationError",
    "ExecutionGate",
    "GLOBAL_GATE",
    "InvalidMeasurementStateError",
    "Iteration",
    "StopReason",
    "current_iteration",
    "get_configuration",
    "set_configuration",
    "start_measurement",
    "stop_measurement",
]

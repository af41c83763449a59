"""Custom exception hierarchy for benchmark execution.

Provides specific exception types for the failure modes of a benchmark run so
runners can report them precisely.
"""

from __future__ import annotations

from typing import Any, Sequence


class BenchmarkError(Exception):
    """Base exception for all benchmark-related errors."""
    pass


class ConfigurationError(BenchmarkError):
    """Raised when benchmark configuration is invalid.

    Attributes:
        config_key: Configuration key that is invalid
        config_value: Invalid value
        reason: Reason for invalidity
    """

    def __init__(
        self,
        message: str,
        config_key: str,
        config_value: Any,
        reason: str,
    ):
        super().__init__(message)
        self.config_key = config_key
        self.config_value = config_value
        self.reason = reason


class InvalidMeasurementStateError(BenchmarkError, RuntimeError):
    """Raised when a measurement boundary is crossed in the wrong order.

    Attributes:
        iteration: Iteration index the call addressed
        state: Measurement state the iteration was in
    """

    def __init__(self, message: str, iteration: int, state: str):
        super().__init__(message)
        self.iteration = iteration
        self.state = state


class ArgumentCountMismatchError(BenchmarkError, TypeError):
    """Raised when the supplied arguments don't match the benchmark signature."""

    def __init__(self, expected: int, provided: int):
        super().__init__(
            f"The test method expected {expected} parameter value{'' if expected == 1 else 's'}, "
            f"but {provided} parameter value{'' if provided == 1 else 's'} "
            f"{'was' if provided == 1 else 'were'} provided."
        )
        self.expected = expected
        self.provided = provided


class BenchmarkTargetError(BenchmarkError):
    """Raised when a benchmark target cannot be resolved.

    Attributes:
        target: Target specification that failed to load
        reason: Reason for failure
    """

    def __init__(self, message: str, target: str, reason: str):
        super().__init__(message)
        self.target = target
        self.reason = reason


class BenchmarkFailuresError(BenchmarkError):
    """Raised when a run recorded more than one failure."""

    def __init__(self, failures: Sequence[BaseException]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} failures recorded during benchmark run:"]
        lines.extend(f"  - {type(exc).__name__}: {exc}" for exc in self.failures)
        super().__init__("\n".join(lines))

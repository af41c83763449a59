"""Pydantic models for benchmark telemetry and run outcomes.

All models include schemaVersion for forward compatibility.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class StopReason(str, Enum):
    """Why a run's iteration sequence ended."""
    MAX_ITERATIONS = "MaxIterations"
    MAX_TIME = "MaxTime"
    TEST_FAILED = "TestFailed"


EventKind = Literal["benchmark_start", "iteration_start", "iteration_stop", "benchmark_stop"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BenchmarkEvent(BaseModel):
    """One telemetry event emitted at a run or iteration boundary."""

    kind: EventKind = Field(..., description="Boundary the event marks")
    run_id: str = Field(..., description="Run identifier grouping a benchmark session")
    test_name: str = Field(..., description="Display name of the benchmark")
    iteration: Optional[int] = Field(None, ge=0, description="Iteration index for iteration events")
    success: Optional[bool] = Field(None, description="Success flag for iteration_stop events")
    stop_reason: Optional[StopReason] = Field(None, description="Stop reason for benchmark_stop events")
    timestamp: datetime = Field(default_factory=_utcnow, description="UTC time the event was recorded")

    schemaVersion: str = Field("1.0", description="Schema version for forward compatibility")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "kind": "iteration_stop",
                "run_id": "5f0c2a",
                "test_name": "tests/test_sort.py::test_sort_large",
                "iteration": 3,
                "success": True,
                "stop_reason": None,
                "timestamp": "2026-01-01T00:00:00Z",
                "schemaVersion": "1.0"
            }
        }
    )

    @model_validator(mode="after")
    def _check_shape(self) -> BenchmarkEvent:
        if self.kind in ("iteration_start", "iteration_stop") and self.iteration is None:
            raise ValueError(f"{self.kind} events require an iteration index")
        if self.kind == "iteration_stop" and self.success is None:
            raise ValueError("iteration_stop events require a success flag")
        if self.kind == "benchmark_stop" and self.stop_reason is None:
            raise ValueError("benchmark_stop events require a stop_reason")
        return self


class BenchmarkRunSummary(BaseModel):
    """Outcome of one benchmark run, as reported by the runners."""

    run_id: str
    test_name: str
    stop_reason: Optional[StopReason] = Field(None, description="None if the run never started iterating")
    iterations: int = Field(0, ge=0, description="Number of iterations that were entered")
    elapsed_seconds: float = Field(0.0, ge=0.0, description="Aggregate wall time of the invocation")
    errors: List[str] = Field(default_factory=list)

    schemaVersion: str = Field("1.0", description="Schema version for forward compatibility")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded(self) -> bool:
        return not self.errors and self.stop_reason not in (None, StopReason.TEST_FAILED)

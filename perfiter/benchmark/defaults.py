"""Process-wide benchmark configuration.

This module provides a single source of truth for the limits every benchmark
run is held to, enabling configuration via environment variables, CLI flags
or pytest options.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from perfiter.common.exceptions import ConfigurationError

ENV_RUN_ID = "PERFITER_RUN_ID"
ENV_MAX_ITERATIONS = "PERFITER_MAX_ITERATIONS"
ENV_MAX_TOTAL_MILLISECONDS = "PERFITER_MAX_TOTAL_MILLISECONDS"


def _new_run_id() -> str:
    return uuid.uuid4().hex


@dataclass
class BenchmarkConfiguration:
    """Limits and identity shared by all benchmark runs in a session.

    Attributes:
        run_id: Opaque token grouping telemetry for one benchmark session
        max_iterations: Upper bound on iterations per run (>= 1)
        max_total_milliseconds: Wall-clock budget per run, checked from iteration 2 on
    """

    run_id: str = field(default_factory=_new_run_id)
    max_iterations: int = 1000
    max_total_milliseconds: float = 1000.0

    def __post_init__(self):
        if not self.run_id:
            raise ConfigurationError(
                "run_id must be a non-empty string",
                config_key="run_id",
                config_value=self.run_id,
                reason="empty",
            )
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int):
            raise ConfigurationError(
                f"max_iterations must be an integer, got {self.max_iterations!r}",
                config_key="max_iterations",
                config_value=self.max_iterations,
                reason="not an integer",
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be >= 1, got {self.max_iterations}",
                config_key="max_iterations",
                config_value=self.max_iterations,
                reason="below minimum",
            )
        if self.max_total_milliseconds < 0:
            raise ConfigurationError(
                f"max_total_milliseconds must be >= 0, got {self.max_total_milliseconds}",
                config_key="max_total_milliseconds",
                config_value=self.max_total_milliseconds,
                reason="negative",
            )

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> BenchmarkConfiguration:
        """Create a configuration from PERFITER_* environment variables.

        Unset variables fall back to the declared defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        if env.get(ENV_RUN_ID):
            kwargs["run_id"] = env[ENV_RUN_ID]
        if env.get(ENV_MAX_ITERATIONS):
            kwargs["max_iterations"] = _parse_number(ENV_MAX_ITERATIONS, env[ENV_MAX_ITERATIONS], int)
        if env.get(ENV_MAX_TOTAL_MILLISECONDS):
            kwargs["max_total_milliseconds"] = _parse_number(
                ENV_MAX_TOTAL_MILLISECONDS, env[ENV_MAX_TOTAL_MILLISECONDS], float
            )
        return cls(**kwargs)

    def replace(self, **overrides) -> BenchmarkConfiguration:
        """Return a copy with the non-None overrides applied."""
        values = self.to_dict()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return BenchmarkConfiguration(**values)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "run_id": self.run_id,
            "max_iterations": self.max_iterations,
            "max_total_milliseconds": self.max_total_milliseconds,
        }


def _parse_number(key: str, raw: str, kind):
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{key}={raw!r} is not a valid {kind.__name__}",
            config_key=key,
            config_value=raw,
            reason="unparseable",
        ) from exc


# Global instance - can be overridden for testing or custom configurations
_configuration: Optional[BenchmarkConfiguration] = None


def get_configuration() -> BenchmarkConfiguration:
    """Get the global BenchmarkConfiguration, loading it from the environment on first use."""
    global _configuration
    if _configuration is None:
        _configuration = BenchmarkConfiguration.from_env()
    return _configuration


def set_configuration(configuration: Optional[BenchmarkConfiguration]) -> None:
    """Set the global BenchmarkConfiguration (None reloads from the environment on next use)."""
    global _configuration
    _configuration = configuration

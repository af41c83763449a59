"""Regression tests for BenchmarkConfiguration."""

import pytest

from perfiter.benchmark.defaults import (
    ENV_MAX_ITERATIONS,
    ENV_MAX_TOTAL_MILLISECONDS,
    ENV_RUN_ID,
    BenchmarkConfiguration,
    get_configuration,
    set_configuration,
)
from perfiter.common.exceptions import ConfigurationError


class TestBenchmarkConfiguration:
    """Test BenchmarkConfiguration defaults and validation."""

    def test_default_values(self):
        config = BenchmarkConfiguration()
        assert config.max_iterations == 1000
        assert config.max_total_milliseconds == 1000.0
        assert len(config.run_id) == 32

    def test_run_ids_are_unique(self):
        assert BenchmarkConfiguration().run_id != BenchmarkConfiguration().run_id

    @pytest.mark.parametrize("value", [0, -3])
    def test_rejects_non_positive_iterations(self, value):
        with pytest.raises(ConfigurationError) as excinfo:
            BenchmarkConfiguration(max_iterations=value)
        assert excinfo.value.config_key == "max_iterations"
        assert excinfo.value.config_value == value

    def test_rejects_non_integer_iterations(self):
        with pytest.raises(ConfigurationError):
            BenchmarkConfiguration(max_iterations=2.5)
        with pytest.raises(ConfigurationError):
            BenchmarkConfiguration(max_iterations=True)

    def test_rejects_negative_budget(self):
        with pytest.raises(ConfigurationError) as excinfo:
            BenchmarkConfiguration(max_total_milliseconds=-1)
        assert excinfo.value.reason == "negative"

    def test_rejects_empty_run_id(self):
        with pytest.raises(ConfigurationError):
            BenchmarkConfiguration(run_id="")

    def test_replace_ignores_none(self):
        config = BenchmarkConfiguration(run_id="abc", max_iterations=5)
        updated = config.replace(max_iterations=None, max_total_milliseconds=20)
        assert updated.to_dict() == {"run_id": "abc", "max_iterations": 5, "max_total_milliseconds": 20}
        assert config.max_total_milliseconds == 1000.0


class TestFromEnv:
    def test_reads_environment(self):
        config = BenchmarkConfiguration.from_env({
            ENV_RUN_ID: "nightly",
            ENV_MAX_ITERATIONS: "25",
            ENV_MAX_TOTAL_MILLISECONDS: "1500.5",
        })
        assert config.to_dict() == {"run_id": "nightly", "max_iterations": 25, "max_total_milliseconds": 1500.5}

    def test_missing_values_fall_back_to_defaults(self):
        config = BenchmarkConfiguration.from_env({})
        assert config.max_iterations == 1000

    def test_unparseable_value(self):
        with pytest.raises(ConfigurationError) as excinfo:
            BenchmarkConfiguration.from_env({ENV_MAX_ITERATIONS: "many"})
        assert excinfo.value.config_key == ENV_MAX_ITERATIONS


class TestGlobalConfiguration:
    def setup_method(self):
        set_configuration(None)

    def teardown_method(self):
        set_configuration(None)

    def test_loaded_from_env_once(self, monkeypatch):
        monkeypatch.setenv(ENV_RUN_ID, "from-env")
        first = get_configuration()
        assert first.run_id == "from-env"
        monkeypatch.setenv(ENV_RUN_ID, "changed")
        assert get_configuration() is first

    def test_set_configuration_overrides(self):
        config = BenchmarkConfiguration(run_id="pinned")
        set_configuration(config)
        assert get_configuration() is config

"""Tests for the pytest plugin, driven through pytester."""

import json

PLUGIN = ("-p", "perfiter.pytest_plugin")


class TestPerfMarker:
    def test_marked_test_is_iterated(self, pytester):
        pytester.makepyfile(
            """
            import pytest
            import perfiter

            CALLS = []

            @pytest.mark.perf(max_iterations=3)
            def test_bench():
                CALLS.append(perfiter.current_iteration().index)

            def test_calls_recorded():
                assert CALLS == [0, 1, 2]
            """
        )
        result = pytester.runpytest(*PLUGIN, "--perf-max-time-ms", "60000")
        result.assert_outcomes(passed=2)
        result.stdout.fnmatch_lines([
            "*perfiter benchmarks*",
            "*test_bench: MaxIterations after 3 iteration(s)*",
        ])

    def test_unmarked_tests_run_once(self, pytester):
        pytester.makepyfile(
            """
            CALLS = []

            def test_plain():
                CALLS.append(1)

            def test_after():
                assert CALLS == [1]
            """
        )
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(passed=2)
        assert "perfiter benchmarks" not in result.stdout.str()

    def test_command_line_limits(self, pytester):
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.perf
            def test_bench():
                CALLS.append(1)

            def test_count():
                assert len(CALLS) == 4
            """
        )
        result = pytester.runpytest(*PLUGIN, "--perf-max-iterations", "4", "--perf-max-time-ms", "60000")
        result.assert_outcomes(passed=2)

    def test_fixtures_are_passed_to_every_iteration(self, pytester):
        pytester.makepyfile(
            """
            import pytest

            SEEN = []

            @pytest.fixture
            def payload():
                return {"size": 3}

            @pytest.mark.perf(max_iterations=2, max_time_ms=60000)
            def test_bench(payload):
                SEEN.append(payload["size"])

            def test_seen():
                assert SEEN == [3, 3]
            """
        )
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(passed=2)

    def test_async_test_functions(self, pytester):
        pytester.makepyfile(
            """
            import asyncio
            import pytest
            import perfiter

            @pytest.mark.perf(max_iterations=2, max_time_ms=60000)
            async def test_bench():
                with perfiter.current_iteration().measure():
                    await asyncio.sleep(0)
            """
        )
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(passed=1)
        result.stdout.fnmatch_lines(["*test_bench: MaxIterations after 2 iteration(s)*"])


class TestFailures:
    def test_failure_stops_and_fails_the_test(self, pytester):
        pytester.makepyfile(
            """
            import pytest
            import perfiter

            @pytest.mark.perf(max_iterations=5, max_time_ms=60000)
            def test_bench():
                if perfiter.current_iteration().index == 1:
                    raise AssertionError("regressed")
            """
        )
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(failed=1)
        result.stdout.fnmatch_lines([
            "*AssertionError: regressed*",
            "*test_bench: TestFailed after 2 iteration(s)*",
        ])

    def test_double_start_fails_the_test(self, pytester):
        pytester.makepyfile(
            """
            import pytest
            import perfiter

            @pytest.mark.perf(max_iterations=3, max_time_ms=60000)
            def test_bench():
                iteration = perfiter.current_iteration()
                iteration.start_measurement()
                iteration.start_measurement()
            """
        )
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(failed=1)
        result.stdout.fnmatch_lines(["*InvalidMeasurementStateError*"])


class TestEventsFile:
    def test_events_written_as_jsonl(self, pytester):
        pytester.makepyfile(
            """
            import pytest
            import perfiter

            @pytest.mark.perf(max_iterations=2, max_time_ms=60000)
            def test_bench():
                perfiter.current_iteration().start_measurement()
            """
        )
        events_path = pytester.path / "events.jsonl"
        result = pytester.runpytest(*PLUGIN, "--perf-events", str(events_path), "--perf-run-id", "ci-7")
        result.assert_outcomes(passed=1)
        events = [json.loads(line) for line in events_path.read_text().splitlines()]
        assert [event["kind"] for event in events] == [
            "benchmark_start",
            "iteration_start", "iteration_stop",
            "iteration_start", "iteration_stop",
            "benchmark_stop",
        ]
        assert {event["run_id"] for event in events} == {"ci-7"}
        assert events[-1]["stop_reason"] == "MaxIterations"
        assert events[0]["test_name"].endswith("::test_bench")

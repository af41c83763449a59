#!/usr/bin/env python3
"""perfiter - run benchmark functions through the iteration engine (Typer).

    perfiter run benchmarks/bench_sort.py:bench_sorted --max-iterations 200
    perfiter config
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from perfiter.benchmark.defaults import BenchmarkConfiguration
from perfiter.benchmark.models import BenchmarkRunSummary
from perfiter.benchmark.telemetry import CompositeEventSink, EventSink, JsonLinesEventSink, LoggingEventSink
from perfiter.common.exceptions import BenchmarkError
from perfiter.common.logger import get_logger, log_benchmark_error, setup_logging
from perfiter.cli.targets import resolve_target
from perfiter.harness.invoker import BenchmarkInvoker

logger = get_logger(__name__)

app = typer.Typer(
    name="perfiter",
    help="Iterated benchmark execution engine",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _configuration(
    run_id: Optional[str],
    max_iterations: Optional[int],
    max_time_ms: Optional[float],
) -> BenchmarkConfiguration:
    try:
        return BenchmarkConfiguration.from_env().replace(
            run_id=run_id,
            max_iterations=max_iterations,
            max_total_milliseconds=max_time_ms,
        )
    except BenchmarkError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)


def _render(console: Console, configuration: BenchmarkConfiguration, summaries: List[BenchmarkRunSummary]) -> None:
    table = Table(title=f"Benchmarks (run {configuration.run_id})")
    table.add_column("Benchmark", style="cyan")
    table.add_column("Stop reason")
    table.add_column("Iterations", justify="right")
    table.add_column("Elapsed (s)", justify="right")
    for summary in summaries:
        reason = summary.stop_reason.value if summary.stop_reason else "NotRun"
        style = "green" if summary.succeeded else "red"
        table.add_row(
            summary.test_name,
            f"[{style}]{reason}[/{style}]",
            str(summary.iterations),
            f"{summary.elapsed_seconds:.3f}",
        )
    console.print(table)
    for summary in summaries:
        for error in summary.errors:
            console.print(f"[red]{summary.test_name}[/red]: {error}")


@app.command("run", help="Run one or more benchmark targets (module:function or file.py:function)")
def run(
    targets: List[str] = typer.Argument(..., help="Benchmark targets"),
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", "-n", help="Maximum iterations per benchmark"),
    max_time_ms: Optional[float] = typer.Option(None, "--max-time-ms", "-t", help="Time budget per benchmark (ms)"),
    run_id: Optional[str] = typer.Option(None, "--run-id", help="Run identifier for telemetry"),
    events: Optional[Path] = typer.Option(None, "--events", help="Append telemetry events to this JSONL file"),
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also log to this file (JSON lines)"),
    json_output: bool = typer.Option(False, "--json", help="Print run summaries as JSON"),
) -> None:
    setup_logging(level=log_level, log_file=log_file, log_format="json")
    configuration = _configuration(run_id, max_iterations, max_time_ms)

    sinks: List[EventSink] = [LoggingEventSink()]
    if events is not None:
        sinks.append(JsonLinesEventSink(events))
    sink = CompositeEventSink(sinks)

    summaries: List[BenchmarkRunSummary] = []
    try:
        for target in targets:
            try:
                name, method = resolve_target(target)
            except BenchmarkError as exc:
                log_benchmark_error(logger, target, str(exc), configuration.run_id)
                summaries.append(BenchmarkRunSummary(
                    run_id=configuration.run_id,
                    test_name=target,
                    errors=[f"{type(exc).__name__}: {exc}"],
                ))
                continue
            invoker = BenchmarkInvoker(method, display_name=name, config=configuration, sink=sink)
            invoker.invoke_sync()
            summaries.append(invoker.summary())
    finally:
        sink.close()

    if json_output:
        typer.echo(json.dumps([summary.model_dump(mode="json") for summary in summaries], indent=2))
    else:
        _render(Console(), configuration, summaries)

    if not all(summary.succeeded for summary in summaries):
        raise typer.Exit(code=1)


@app.command("config", help="Show the effective configuration as JSON")
def show_config(
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", "-n"),
    max_time_ms: Optional[float] = typer.Option(None, "--max-time-ms", "-t"),
    run_id: Optional[str] = typer.Option(None, "--run-id"),
) -> None:
    configuration = _configuration(run_id, max_iterations, max_time_ms)
    typer.echo(json.dumps(configuration.to_dict(), indent=2))


def main() -> int:
    try:
        app()
    except SystemExit as exc:  # Typer raises SystemExit
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Benchmark configuration, telemetry models and sinks."""

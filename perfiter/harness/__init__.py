"""Benchmark execution engine: gate, iteration control, measurement and invocation."""

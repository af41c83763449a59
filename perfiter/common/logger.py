"""Structured logging infrastructure with Rich console and JSON file handlers.

Provides readable TTY output for interactive use and JSON logging for machine parsing.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# Global console instance
_console: Optional[Console] = None


def get_console() -> Console:
    """Get global Rich console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def is_tty() -> bool:
    """Check if stdout is a TTY (interactive terminal)."""
    return sys.stdout.isatty()


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    log_format: str = "text",  # "text" or "json"
    use_rich: Optional[bool] = None
) -> None:
    """Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        log_format: Format for file logging ("text" or "json")
        use_rich: Whether to use Rich for console output (auto-detects TTY if None)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if use_rich is None:
        use_rich = is_tty()

    # Clear existing handlers
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    console_handler: Union[RichHandler, logging.Handler]
    if use_rich:
        console_handler = RichHandler(
            console=get_console(),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        if log_format == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_benchmark_start(logger: logging.Logger, benchmark_name: str, run_id: Optional[str] = None) -> None:
    """Log benchmark start with context.

    Args:
        logger: Logger instance
        benchmark_name: Name of the benchmark
        run_id: Optional run identifier
    """
    context = f"[{run_id}] " if run_id else ""
    logger.info(f"Starting benchmark: {context}{benchmark_name}")


def log_benchmark_complete(
    logger: logging.Logger,
    benchmark_name: str,
    stop_reason: str,
    iterations: int,
    run_id: Optional[str] = None,
) -> None:
    """Log benchmark completion with its stop reason and iteration count."""
    context = f"[{run_id}] " if run_id else ""
    logger.info(f"Completed: {context}{benchmark_name} - {stop_reason} after {iterations} iteration(s)")


def log_benchmark_error(logger: logging.Logger, benchmark_name: str, error: str, run_id: Optional[str] = None) -> None:
    """Log benchmark error.

    Args:
        logger: Logger instance
        benchmark_name: Name of the benchmark
        error: Error message
        run_id: Optional run identifier
    """
    context = f"[{run_id}] " if run_id else ""
    logger.error(f"Failed: {context}{benchmark_name} - {error}")

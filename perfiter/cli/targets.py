"""Resolve ``module:function`` and ``path/to/file.py:function`` benchmark targets."""

from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Tuple

from perfiter.common.exceptions import BenchmarkTargetError


def _load_module(spec: str, target: str) -> ModuleType:
    path = Path(spec)
    if spec.endswith(".py") or path.exists():
        if not path.is_file():
            raise BenchmarkTargetError(f"Benchmark file not found: {spec}", target=target, reason="missing file")
        module_name = f"perfiter_target_{path.stem}"
        module_spec = importlib.util.spec_from_file_location(module_name, path)
        if module_spec is None or module_spec.loader is None:
            raise BenchmarkTargetError(f"Cannot import {spec}", target=target, reason="no loader")
        module = importlib.util.module_from_spec(module_spec)
        sys.modules[module_name] = module
        module_spec.loader.exec_module(module)
        return module
    try:
        return importlib.import_module(spec)
    except ImportError as exc:
        raise BenchmarkTargetError(f"Cannot import module {spec}: {exc}", target=target, reason="import failed") from exc


def resolve_target(target: str) -> Tuple[str, Callable[..., Any]]:
    """Return ``(display_name, callable)`` for a benchmark target.

    ``Class.method`` attribute paths instantiate the class with no arguments,
    so each target gets a fresh instance.
    """
    module_spec, sep, attr_path = target.rpartition(":")
    if not sep or not module_spec or not attr_path:
        raise BenchmarkTargetError(
            f"Target must look like module:function or file.py:function, got {target!r}",
            target=target,
            reason="malformed",
        )
    obj: Any = _load_module(module_spec, target)
    parts = attr_path.split(".")
    for index, part in enumerate(parts):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise BenchmarkTargetError(
                f"{module_spec} has no attribute {'.'.join(parts[:index + 1])}",
                target=target,
                reason="missing attribute",
            ) from exc
        if isinstance(obj, type) and index < len(parts) - 1:
            obj = obj()
    if not callable(obj):
        raise BenchmarkTargetError(f"{target} is not callable", target=target, reason="not callable")
    return target, obj

"""
schedule_engines.tracer -- SCHEDULE_ENGINE_TRACE records for engine calls.

Every public engine entry point (graph builder, CPM, EVM, baseline
variance) is wrapped with ``@traced_engine``.  One INFO record is written
per successful call with the engine name and version, a fingerprint of
the selected keyword inputs, the wall time, and an optional summary of
the result (task count, critical path length, ...).  A call that raises
writes nothing; the caller logs the failure with its own context.

Fingerprints:
    SHA-256 over a canonical text form of the selected kwargs, first 16
    hex chars.  Mappings are key-sorted, dates use ISO-8601, Decimals are
    normalized and enums use their value.  Anything exposing a string
    ``fingerprint`` (a built ``ProjectGraph``) contributes that string
    instead of being walked, so a 50k-task graph is hashed once, at build
    time.  Absent kwargs hash as ``null``.
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from schedule_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

Summarizer = Callable[[Any], Mapping[str, Any]]


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    fingerprint = getattr(value, "fingerprint", None)
    if isinstance(fingerprint, str):
        return fingerprint
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Summarizer | None = None,
) -> Callable:
    """
    Wrap a keyword-only engine function with trace logging.

    Args:
        engine_name: Stable engine identifier, e.g. ``"cpm"``.
        engine_version: Bumped whenever the engine's output for a given
            input can change.
        fingerprint_fields: Keyword arguments that identify the input.
        summarize: Maps the return value to extra trace fields.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            fields: dict[str, Any] = {
                "trace_type": "SCHEDULE_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields
                    else ""
                ),
                "duration_ms": elapsed_ms,
                "function": func.__qualname__,
            }
            if summarize is not None:
                fields.update(summarize(result))
            _logger.info("SCHEDULE_ENGINE_TRACE", extra=fields)
            return result

        return wrapper

    return decorator

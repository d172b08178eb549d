"""
tbai_engines.tracer -- Engine invocation tracer emitting TICKETBAI_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs), and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Does NOT introduce I/O into engines; emits a log record only.

Invariants enforced:
    - Fingerprint computation is deterministic: _canonicalize produces stable
      string representations; dict keys are sorted; the hash is SHA-256
      truncated to 16 hex chars.
    - The decorator only reads arguments and emits a log record; it does not
      mutate inputs.

Usage:
    from tbai_engines.tracer import traced_engine

    @traced_engine("breakdown", "1.0", fingerprint_fields=("lines", "tags"))
    def build_breakdown(lines, tags):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from dataclasses import fields, is_dataclass
from decimal import Decimal
from typing import Any

from tbai_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting.

    Returns a deterministic string for None, numbers, str, dataclasses,
    dict (sorted keys) and list/tuple (order-preserved).  Unknown types fall
    back to ``str(value)``.
    """
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if is_dataclass(value) and not isinstance(value, type):
        return "{" + ",".join(
            f"{f.name}:{_canonicalize(getattr(value, f.name))}" for f in fields(value)
        ) + "}"
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected input fields.

    Missing fields are recorded as "null".  Returns a 16-character hex prefix.
    """
    parts: list[str] = []
    for name in fingerprint_fields:
        val = arguments.get(name)
        parts.append(f"{name}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits TICKETBAI_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "breakdown").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Argument names to include in the input
            fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "TICKETBAI_ENGINE_TRACE",
                extra={
                    "trace_type": "TICKETBAI_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator

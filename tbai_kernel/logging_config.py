"""
Structured JSON logging for the TicketBAI pipeline.

Every record is one JSON object per line.  Records emitted while a
conversion is running carry that conversion's context (``invoice_id``,
``zone``, ``issuer_role``, ``trace_id``); ``extra=`` fields are merged in,
and TicketBAI exceptions contribute their ``code`` and structured attributes
as ``exc_*`` keys.

All loggers live under the ``ticketbai`` namespace and are obtained through
``get_logger``.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

ROOT_LOGGER = "ticketbai"

CONTEXT_FIELDS = ("invoice_id", "zone", "issuer_role", "trace_id")

_context: ContextVar[dict[str, str]] = ContextVar("ticketbai_log_context", default={})


class LogContext:
    """Conversion-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """
        Layer ``fields`` over the current context for the ``with`` block.

        ``None`` values leave the field untouched.  Unknown names raise
        ``TypeError`` so a typo cannot silently drop a field.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


# Attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(*, level: int | str = logging.INFO, stream: Any = None) -> None:
    """
    Attach a JSON handler to the ``ticketbai`` logger.

    Calling it again only updates the level; no second handler is added.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach handlers and restore defaults. Used by the test suite."""
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True

"""
Structured JSON logging for DataVault.

Every record under the ``datavault`` logger is written as one JSON line:
timestamp, level, logger, message, the current ``LogContext`` fields and
whatever was passed through ``extra``.  Ingestion runs bind the dataset and
source file name; the claim gateway binds the caller identity, so a single
upload or claim can be followed across modules with one filter.

Values that ``json`` cannot encode natively are rendered by
``_JSONEncoder``: dataclasses (e.g. an ingestion ``ValidationError``) become
objects, enums their value, UUID/Decimal strings, dates ISO strings.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"datavault_log_{name}", default=None)
    for name in ("correlation_id", "dataset", "actor_id", "source_name")
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT_FIELDS[name]
    except KeyError:
        raise TypeError(
            f"Unknown log context field {name!r}; expected one of {sorted(_CONTEXT_FIELDS)}"
        ) from None


class LogContext:
    """
    Request-scoped log fields held in contextvars.

    Each thread and each asyncio task sees its own values, so concurrent
    claims never leak a caller identity into each other's log lines.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set context fields. None values are skipped; unknown names raise TypeError."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _CONTEXT_FIELDS.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_FIELDS.values():
            var.set(None)

    @staticmethod
    def bind(**fields: str | None) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block, then restore them::

            with LogContext.bind(dataset="deposits_dp10", source_name="dp10.txt"):
                ...
        """
        for name in fields:
            _context_var(name)
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            if value is not None:
                var = _CONTEXT_FIELDS[name]
                self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    def default(self, obj: Any) -> Any:
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (UUID, Decimal)):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        return super().default(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """
    Flatten an exception for the log line.

    DataVault errors carry ``code`` and their context as public attributes
    (dataset, attempts, identity, ...); each becomes an ``exc_*`` key.
    """
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


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
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STDLIB_KEYS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "datavault"

_lock = threading.Lock()
_installed: list[logging.Handler] = []


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``datavault`` namespace, e.g. ``datavault.services.claim``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``datavault`` logger.

    Idempotent: once a handler is installed, later calls do nothing until
    ``reset_logging()``.  ``level`` accepts the ``log_level`` setting as-is
    (``"DEBUG"``, ``"info"``, ...).
    """
    resolved = _resolve_level(level)
    with _lock:
        if _installed:
            return
        h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        h.setFormatter(StructuredFormatter())

        root_logger = logging.getLogger(_LOGGER_PREFIX)
        root_logger.setLevel(resolved)
        root_logger.propagate = False
        root_logger.addHandler(h)
        _installed.append(h)


def reset_logging() -> None:
    """Remove the handler installed by configure_logging(). Used by tests."""
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    with _lock:
        while _installed:
            root_logger.removeHandler(_installed.pop())
    root_logger.setLevel(logging.WARNING)

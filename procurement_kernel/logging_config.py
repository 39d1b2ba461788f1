"""
Structured JSON logging for purchase-request approval.

Every record is one JSON line.  The purchase request and actor being
worked on are carried in ``LogContext`` and stamped on every record
emitted while a transition runs.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

_LOGGER_PREFIX = "procurement_kernel"


class LogContext:
    """Request-scoped log fields, safe across threads and tasks."""

    _vars: dict[str, ContextVar[str | None]] = {
        "request_id": ContextVar("log_request_id", default=None),
        "actor_id": ContextVar("log_actor_id", default=None),
    }

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None fields only."""
        return {
            name: var.get() for name, var in cls._vars.items() if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(
        cls,
        *,
        request_id: str | None = None,
        actor_id: str | None = None,
    ) -> Iterator[None]:
        """Set fields for the duration of the block, then restore the previous values."""
        tokens = [
            (cls._vars[name], cls._vars[name].set(value))
            for name, value in (("request_id", request_id), ("actor_id", actor_id))
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    # Money stays a string so no precision is lost
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, tuple):
        return list(obj)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the procurement_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """Send procurement_kernel records to ``handler`` (stderr by default). Idempotent."""
    global _handler
    if _handler is not None:
        return
    _handler = handler if handler is not None else logging.StreamHandler(sys.stderr)
    _handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False
    root_logger.addHandler(_handler)


def reset_logging() -> None:
    """Undo configure_logging(). For tests."""
    global _handler
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    if _handler is not None:
        root_logger.removeHandler(_handler)
        _handler = None
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True

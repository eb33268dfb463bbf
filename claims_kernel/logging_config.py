"""Structured JSON logging for the claims kernel.

Every record under the ``claims_kernel`` logger is written as one JSON
object per line.  Request-scoped fields (which claim is being reviewed, who
is acting) live in ``LogContext`` and are merged into every record emitted
while they are bound; per-call details go through ``extra=``.
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
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from claims_kernel.exceptions import ClaimsKernelError

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "claim_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"claims_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """contextvars-backed holder for request-scoped log fields.

    Safe across threads and asyncio tasks: each task sees its own values.
    Unknown field names are ignored.
    """

    @staticmethod
    def set(
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        claim_id: str | None = None,
    ) -> None:
        """Set fields; ``None`` leaves the current value in place."""
        values = {
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "claim_id": claim_id,
        }
        for name, value in values.items():
            if value is not None:
                _context_vars[name].set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        """Bound fields only; unset fields are omitted."""
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block.

        Previous values are restored on exit, including when the block
        raises.
        """
        tokens = [
            (_context_vars[name], _context_vars[name].set(value))
            for name, value in fields.items()
            if value is not None and name in _context_vars
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else on a record came from extra=.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Key precedence: the fixed header (ts, level, logger, message), then
    bound ``LogContext`` fields, then ``extra=`` fields that do not clash.
    ``ClaimsKernelError`` instances contribute ``exc_code`` plus their
    public attributes as ``exc_<name>``; other exceptions only their type,
    message and traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        # Only kernel exceptions have vetted public attributes; driver errors
        # carry bound SQL parameters.
        if isinstance(exc, ClaimsKernelError):
            fields["exc_code"] = exc.code
            for name, value in vars(exc).items():
                if not name.startswith("_"):
                    fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------

_ROOT_LOGGER = "claims_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Child of the ``claims_kernel`` logger, e.g. ``services.workflow``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``claims_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``.  Records
    do not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)

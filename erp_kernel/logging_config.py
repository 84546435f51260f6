"""
Structured JSON logging for the ERP core.

Every record under the ``erp`` logger is written as one JSON object per
line.  Fields passed through ``extra=`` become top-level keys; fields bound
with ``LogContext.bind()`` (correlation, actor, invoice, reconciliation)
are merged into every record emitted inside the block.  Kernel exceptions
logged with ``exc_info`` contribute their ``code`` and public attributes
as ``exc_*`` keys.
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

ROOT_LOGGER_NAME = "erp"


# ---------------------------------------------------------------------------
# Request-scoped fields
# ---------------------------------------------------------------------------


_EMPTY: Mapping[str, str] = MappingProxyType({})
_bound_fields: ContextVar[Mapping[str, str]] = ContextVar("erp_log_fields", default=_EMPTY)


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Only the names in ``FIELDS`` are accepted; anything else passed to
    ``bind()`` is dropped.
    """

    FIELDS: frozenset[str] = frozenset({
        "correlation_id",
        "actor_id",
        "invoice_id",
        "reconciliation_id",
    })

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Add fields for the duration of the block; the previous set is restored on exit."""
        accepted = {
            name: str(value)
            for name, value in fields.items()
            if name in cls.FIELDS and value is not None
        }
        token = _bound_fields.set(MappingProxyType({**_bound_fields.get(), **accepted}))
        try:
            yield cls
        finally:
            _bound_fields.reset(token)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_bound_fields.get())

    @classmethod
    def clear(cls) -> None:
        _bound_fields.set(_EMPTY)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else on a record came from ``extra=``.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name in ("args", "code"):
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, bound context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for name, value in vars(record).items():
            if name not in _RECORD_ATTRIBUTES:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json_value)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``get_logger("modules.ar.payments")`` -> the ``erp.modules.ar.payments`` logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_state_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``erp`` logger.

    Only the first call has an effect until ``reset_logging()``.  The
    ``erp`` logger does not propagate, so host applications keep their
    own root configuration.
    """
    global _handler_installed
    with _state_lock:
        if _handler_installed:
            return
        _handler_installed = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    erp_logger = logging.getLogger(ROOT_LOGGER_NAME)
    erp_logger.setLevel(level)
    erp_logger.propagate = False
    erp_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove the handler and return to WARNING.  Tests only."""
    global _handler_installed
    with _state_lock:
        _handler_installed = False
    erp_logger = logging.getLogger(ROOT_LOGGER_NAME)
    erp_logger.handlers.clear()
    erp_logger.setLevel(logging.WARNING)

"""JSON logging for engine operations.

Every record carries the correlation id and the name of the engine operation
(``recommend_look``, ``plan_trip``...) it was emitted under, so one request can
be followed through filtering, assignment, diversification and reranking.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import re
import uuid
from typing import Any, Dict, Iterator, Optional

CORRELATION_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("correlation_id", default=None)
OPERATION: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("operation", default=None)

_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
# Caller identity and trip free text never reach the log stream.
REDACTED_FIELDS = frozenset({"actor_key", "destination", "notes", "weather_summary"})
_EMAIL = re.compile(r"[\w.\-]+@[\w.\-]+")


def redact_for_log(payload: Any) -> Any:
    """Scrub redacted fields and e-mail addresses; item ids and scores pass through."""

    if isinstance(payload, dict):
        return {
            key: "[redacted]" if key in REDACTED_FIELDS else redact_for_log(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple, set, frozenset)):
        return [redact_for_log(value) for value in payload]
    if isinstance(payload, str):
        return _EMAIL.sub("[redacted-email]", payload)
    if payload is None or isinstance(payload, (int, float, bool)):
        return payload
    return str(payload)


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, event, operation, correlation id, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", message),
            "operation": getattr(record, "operation", None) or OPERATION.get(),
            "correlation_id": getattr(record, "correlation_id", None) or CORRELATION_ID.get(),
        }
        if payload["event"] != message:
            payload["message"] = message
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in payload:
                payload[key] = redact_for_log(value)
        return json.dumps(payload)


def configure_logging(level: int | str | None = None) -> None:
    """Send every engine log record to stderr as JSON."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.root.handlers.clear()
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), handlers=[handler])


def ensure_correlation_id(correlation_id: str | None = None) -> str:
    """Return the active correlation id, adopting the given one or minting a new one."""

    if correlation_id:
        CORRELATION_ID.set(correlation_id)
        return correlation_id
    current = CORRELATION_ID.get()
    if current:
        return current
    current = uuid.uuid4().hex
    CORRELATION_ID.set(current)
    return current


@contextlib.contextmanager
def operation_context(operation: str, correlation_id: str | None = None) -> Iterator[str]:
    """Tag every record logged inside the block with ``operation`` and one correlation id."""

    id_token = CORRELATION_ID.set(correlation_id or CORRELATION_ID.get() or uuid.uuid4().hex)
    operation_token = OPERATION.set(operation)
    try:
        yield CORRELATION_ID.get()
    finally:
        OPERATION.reset(operation_token)
        CORRELATION_ID.reset(id_token)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log ``event`` with redacted structured fields attached as record extras."""

    correlation_id = ensure_correlation_id(fields.pop("correlation_id", None))
    exc_info = fields.pop("exc_info", None)
    logger.log(
        level,
        event,
        exc_info=exc_info,
        extra={"event": event, "correlation_id": correlation_id, **redact_for_log(fields)},
    )


__all__ = [
    "REDACTED_FIELDS",
    "JsonFormatter",
    "configure_logging",
    "ensure_correlation_id",
    "log_event",
    "operation_context",
    "redact_for_log",
]

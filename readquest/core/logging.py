"""
Structured logging for the streak service.

Every record carries a correlation id: the HTTP request id inside the API,
or a generated run id for batch recalculations. Streak records also carry
the user they concern, so one user's recomputes can be followed across
requests and nightly runs.

- JSON lines in production, one readable line per record elsewhere.
- `request_context()` binds a correlation id for a block of work.
- `log_event()` builds consistent records with bounded field sizes.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional
from uuid import uuid4

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOGGER_NAME = "readquest"

# Record attributes that belong to logging itself, not to our payload
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()) | {"message", "asctime"}
_HEADLINE_FIELDS = {"request_id", "user_id"}


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


@contextmanager
def request_context(request_id: Optional[str] = None, *, prefix: str = "req") -> Iterator[str]:
    """Bind a correlation id (given or generated) for the duration of the block."""
    rid = request_id or f"{prefix}-{uuid4().hex[:12]}"
    token = request_id_ctx_var.set(rid)
    try:
        yield rid
    finally:
        request_id_ctx_var.reset(token)


def _format_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms")):
        if latency_ms < bound:
            return label
    return ">=1000ms"


def _payload_fields(record: logging.LogRecord) -> Dict[str, object]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and k not in _HEADLINE_FIELDS}


class RequestIdFilter(logging.Filter):
    """Fill in the bound correlation id on records that did not pass one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            "user_id": getattr(record, "user_id", None),
        }
        payload.update(_payload_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    """`<ts> LEVEL [rid=...] [user=...] message key=value ...`"""

    def format(self, record: logging.LogRecord) -> str:
        parts = [_format_timestamp(record), record.levelname]
        rid = getattr(record, "request_id", None)
        if rid:
            parts.append(f"[rid={rid}]")
        user_id = getattr(record, "user_id", None)
        if user_id:
            parts.append(f"[user={user_id}]")
        parts.append(record.getMessage())
        parts.extend(f"{k}={v}" for k, v in sorted(_payload_fields(record).items()))
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development", level: str = "INFO") -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn keeps its own handlers; stop its records printing twice
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _safe_truncate(value, limit: int = 500):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    logger: Optional[logging.Logger] = None,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Emit `msg` with the correlation id, user and truncated extra fields attached."""
    log = logger or logging.getLogger(LOGGER_NAME)
    if not logging.getLogger(LOGGER_NAME).handlers:
        configure_logging(os.getenv("ENV", "development"))

    payload = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
    }
    if event_type:
        payload["event_type"] = event_type
    if error_code:
        payload["error_code"] = error_code
    for k, v in (extra or {}).items():
        payload[k] = _safe_truncate(v)

    getattr(log, level, log.info)(msg, extra=payload)

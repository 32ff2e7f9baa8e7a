"""Structured logging for the relay.

Every line is one JSON object carrying ``timestamp``, ``level``, ``logger``,
``event`` (the dotted message, e.g. ``queue.mobile_enqueued``), the bound
``request_id`` if any, and the record's ``extra`` fields.

Relayed commands and statuses are opaque device traffic and API keys are
credentials, so neither may reach a log sink: fields named in
``REDACTED_FIELDS`` are masked at any nesting depth and raw ``bytes`` are
reduced to their length.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

DEFAULT_LOG_FILE = "logs/relay.log"

REDACTED = "[REDACTED]"

# Compared case-insensitively against extra keys and nested mapping keys
REDACTED_FIELDS: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "app_api_keys",
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "access_token",
        "secret",
        "password",
        "payload",
        "protobuf_payload",
        "protobufpayload",
    }
)

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "request_id",
}

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


def scrub(value: Any, fields: frozenset[str] = REDACTED_FIELDS) -> Any:
    """Return ``value`` with sensitive mapping entries masked and bytes sized.

    Containers are copied, never modified in place, so objects passed through
    ``extra`` are left untouched for the caller.
    """
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in fields else scrub(item, fields)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(scrub(item, fields) for item in value)
    return value


def record_extras(record: logging.LogRecord, fields: frozenset[str] = REDACTED_FIELDS) -> dict[str, Any]:
    """Collect the ``extra`` fields of a record, scrubbed."""
    return {
        key: REDACTED if key.lower() in fields else scrub(value, fields)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RedactionFilter(logging.Filter):
    """Scrub extras in place and stamp the bound request id onto the record.

    Installed on the handler so that every formatter, including third-party
    ones, only ever sees scrubbed values.
    """

    def __init__(self, fields: Iterable[str] | None = None) -> None:
        super().__init__()
        self.fields = frozenset(f.lower() for f in fields) if fields else REDACTED_FIELDS

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in record_extras(record, self.fields).items():
            setattr(record, key, value)
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def __init__(self, fields: Iterable[str] | None = None) -> None:
        super().__init__()
        self.fields = frozenset(f.lower() for f in fields) if fields else REDACTED_FIELDS

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            line["request_id"] = request_id

        line.update(record_extras(record, self.fields))

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(line, default=str)


def build_handler(log_settings: LogSettings) -> logging.Handler:
    """Return a stdout handler, or a file handler when ``output`` is ``file``.

    Files rotate at ``max_bytes`` keeping ``backup_count`` old files;
    ``max_bytes=0`` writes a single ever-growing file.
    """
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or DEFAULT_LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Route all logging through one scrubbed JSON handler on the root logger.

    ``APP_DEBUG=true`` forces DEBUG regardless of ``LOG_LEVEL``. An unknown
    level name falls back to INFO.
    """
    cfg = log_settings or settings.log

    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    handler = build_handler(cfg)
    handler.addFilter(RedactionFilter())
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Uvicorn keeps its own handlers otherwise; its access line is replaced by http.request
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").disabled = True

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
import json
import logging
import sys
from typing import Any

from postdigest.logging_context import get_request_id, get_run_id

DEFAULT_REDACT_FIELDS = frozenset(
    {
        "api_key",
        "authorization",
        "cookie",
        "cookies",
        "gemini_api_key",
        "twitter_cookies",
    }
)
REDACTED = "[REDACTED]"

# httpx logs request URLs at INFO and the Gemini key travels as a query parameter.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "color_message"}
_CONTEXT_KEYS = ("request_id", "run_id")
_LEVEL_TAGS = {
    logging.DEBUG: "DBG",
    logging.INFO: "INF",
    logging.WARNING: "WRN",
    logging.ERROR: "ERR",
    logging.CRITICAL: "CRT",
}
_CONSOLE_KEY_ALIASES = {"identity": "id", "run_id": "run", "request_id": "rid"}


def parse_redact_fields(raw: str | None) -> set[str]:
    extra = {item.strip().lower() for item in (raw or "").split(",")}
    extra.discard("")
    return set(DEFAULT_REDACT_FIELDS) | extra


def redact(value: Any, fields: Iterable[str], *, key: str | None = None) -> Any:
    """Replace values stored under sensitive keys, descending into containers."""
    field_set = fields if isinstance(fields, (set, frozenset)) else set(fields)
    if key is not None and key.lower() in field_set:
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(v, field_set, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(item, field_set, key=key) for item in value]
    return value


def configure_logging(
    *,
    level: str,
    log_format: str,
    redact_fields: set[str],
    include_uvicorn_access: bool = False,
) -> None:
    resolved_level = logging.getLevelNamesMapping().get(level.strip().upper(), logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved_level)
    handler.addFilter(ExecutionContextFilter())
    if log_format.strip().lower() == "json":
        handler.setFormatter(JsonLogFormatter(redact_fields=redact_fields))
    else:
        handler.setFormatter(ConsoleLogFormatter(redact_fields=redact_fields))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)

    for name, framework_level in (
        ("uvicorn", resolved_level),
        ("uvicorn.error", resolved_level),
        ("uvicorn.access", resolved_level if include_uvicorn_access else logging.WARNING),
    ):
        framework_logger = logging.getLogger(name)
        framework_logger.handlers.clear()
        framework_logger.propagate = True
        framework_logger.setLevel(framework_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))


class ExecutionContextFilter(logging.Filter):
    """Copies the active request/run identifiers onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, current in (("request_id", get_request_id()), ("run_id", get_run_id())):
            if current and not getattr(record, key, None):
                setattr(record, key, current)
        return True


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, redact_fields: set[str]) -> None:
        super().__init__()
        self._redact_fields = {field.lower() for field in redact_fields}

    def build_payload(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = record_fields(record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": fields.pop("event", None) or record.getMessage(),
        }
        for key in _CONTEXT_KEYS:
            value = fields.pop(key, None)
            if value:
                payload[key] = value
        payload.update(redact(fields, self._redact_fields))
        if record.exc_info and record.exc_info[0] is not None:
            payload["error_type"] = record.exc_info[0].__name__
            payload["exception"] = self.formatException(record.exc_info)
        return payload

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.build_payload(record), ensure_ascii=True, default=str)


class ConsoleLogFormatter(logging.Formatter):
    """One line per record: ``time | LVL | logger | event | key=value ...``."""

    def __init__(self, *, redact_fields: set[str]) -> None:
        super().__init__()
        self._json_formatter = JsonLogFormatter(redact_fields=redact_fields)

    def format(self, record: logging.LogRecord) -> str:
        payload = self._json_formatter.build_payload(record)
        exception = payload.pop("exception", None)
        parts = [
            str(payload.pop("timestamp")),
            _LEVEL_TAGS.get(record.levelno, record.levelname[:3].upper()),
            str(payload.pop("logger")),
            str(payload.pop("event")),
        ]
        payload.pop("level", None)

        method = payload.pop("method", None)
        path = payload.pop("path", None)
        if method and path:
            parts.append(f"{method} {path}")
        for key in sorted(payload):
            parts.append(f"{_CONSOLE_KEY_ALIASES.get(key, key)}={payload[key]}")
        if exception:
            parts.append(str(exception))
        return " | ".join(parts)

"""Structured JSON logs for the webhook and inbox services.

Every record is one JSON line on stdout. Structured fields travel in
``extra={"context": {...}}``; context keys that name a credential (page access
tokens, the app secret, the admin token, signature headers) are masked before
the line is written.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_PREFIX = "inbox"
REDACTED = "***"

SECRET_CONTEXT_KEYS = frozenset(
    {
        "access_token",
        "app_secret",
        "admin_token",
        "verify_token",
        "hub.verify_token",
        "x-admin-token",
        "x-hub-signature-256",
        "signature",
        "authorization",
    }
)

# Chatty third-party loggers; the request URL carries the page token as a query parameter.
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


def redact_context(value: Any) -> Any:
    """Copy of ``value`` with credential-named keys masked at any depth."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SECRET_CONTEXT_KEYS else redact_context(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_context(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = redact_context(context)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def resolve_level(level: str) -> int:
    """Numeric level for a name such as ``"debug"``; unknown names fall back to INFO."""
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: str = "INFO") -> None:
    """Route every logger to one JSON stdout handler; safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_level(level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Adds fixed fields (e.g. the platform) to each record's context.

    Call-site fields go in a ``context=`` keyword and win over the fixed ones.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs

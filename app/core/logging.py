from __future__ import annotations

import json
import logging
import logging.config
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from app.core.config import settings

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}

# Set by the observability middleware for the lifetime of a request.
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Loggers configured at LOG_LEVEL.
SERVICE_LOGGERS = ("app.requests", "app.auth", "app.promotions", "app.security", "app.errors")


def bind_request_id(request_id: str | None):
    """Attach ``request_id`` to every record logged in the current context."""
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


def current_request_id() -> str | None:
    return _request_id.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, request id, extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        message: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = current_request_id()
        if request_id:
            message["request_id"] = request_id
        if record.exc_info:
            message["exc_info"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key != "request_id"
        }
        if extra:
            message["extra"] = extra

        return json.dumps(message, default=str)


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    loggers: dict[str, Any] = {name: {"level": level} for name in SERVICE_LOGGERS}
    # Security alerts are never filtered below WARNING.
    loggers["app.security"] = {"level": min(level, logging.WARNING)}
    loggers.update(
        {
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
            "sqlalchemy.engine": {"level": logging.WARNING},
        }
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                }
            },
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": loggers,
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def security_alert(message: str, **context: Any) -> None:
    """Failed logins, rejected tokens and permission denials."""
    get_logger("app.security").warning(message, extra={"alert": True, **context})

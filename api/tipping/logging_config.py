"""Stdlib logging setup for the API and CLI processes (JSON lines on stdout)."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from .utils.datetime_utils import now_utc

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL asks for DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "celery.beat")


def resolve_log_level(level: str | None, environment: str) -> int:
    """Explicit level wins; otherwise INFO in production and DEBUG elsewhere."""
    name = (level or "").strip().upper()
    if not name:
        name = "INFO" if environment.lower() == "production" else "DEBUG"
    return logging._nameToLevel.get(name, logging.INFO)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields merged in."""

    def __init__(self, service: str, environment: str) -> None:
        super().__init__()
        self._service = service
        self._environment = environment

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": now_utc().isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "service": self._service,
            "environment": self._environment,
            "message": record.getMessage(),
        }
        payload.update({key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(service: str, environment: str, log_level: str | None = None) -> None:
    """Install the JSON handler on the root logger and align structlog's level."""
    from .logging import configure_structlog

    level = resolve_log_level(log_level or os.getenv("LOG_LEVEL"), environment)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JSONFormatter(service=service, environment=environment))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    configure_structlog(level)

"""structlog event logger shared by services, the Squiggle client and jobs.

Events are JSON lines on stdout, with the same keys as the API access log
(timestamp, level, message, service, environment).
"""

from __future__ import annotations

import structlog

from .config import settings
from .logging_config import resolve_log_level

SERVICE_NAME = "footy-tipping"


def configure_structlog(level: int) -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


configure_structlog(resolve_log_level(settings.log_level, settings.environment))

# Lazy proxy: picks up a later configure_structlog() from configure_logging().
logger = structlog.get_logger(
    SERVICE_NAME,
    logger_name=SERVICE_NAME,
    service=SERVICE_NAME,
    environment=settings.environment,
)

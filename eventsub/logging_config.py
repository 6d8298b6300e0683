"""Structured logging configuration using structlog.

The library only emits log events; applications that do not configure
structlog themselves can call `configure_logging()` once at startup.
Console output is used in development and JSON everywhere else.
"""

import sys
from typing import Any

import structlog

from eventsub.config import Settings

LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog from settings.

    Args:
        settings: Settings providing LOG_LEVEL and ENVIRONMENT
            (defaults to Settings.from_env()).
    """
    settings = settings or Settings.from_env()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    # Unknown level names fall back to INFO
    level = LEVELS.get(settings.LOG_LEVEL.upper(), LEVELS["INFO"])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )

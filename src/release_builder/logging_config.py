"""Structured logging setup for the release builder.

Events are logged as snake_case names with keyword context, e.g.:
  {"event": "items_fetched", "provider": "github", "count": 5}

so fetch failures, generation latency and draft creation can be filtered
per provider or per session in whatever log store ingests them.

Usage:
    from release_builder.logging_config import setup_logging, get_logger

    setup_logging(environment="production")
    logger = get_logger(__name__)
    logger.info("items_fetched", provider="jira", count=12)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


def setup_logging(
    environment: str | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and the standard library logger.

    Production renders JSON lines; any other environment gets the
    colorized console renderer.

    Args:
        environment: "development" or "production". Falls back to the
                     ENVIRONMENT env var.
        log_level: DEBUG, INFO, WARNING or ERROR. Falls back to LOG_LEVEL.
    """
    env = environment or os.environ.get("ENVIRONMENT", "development")
    level = getattr(logging, (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper())

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if env == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # httpx and uvicorn log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str) -> Any:
    """Return a structlog bound logger named ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_session(session_id: str, provider: str) -> None:
    """Attach session context to every event logged in the current task."""
    structlog.contextvars.bind_contextvars(session_id=session_id, provider=provider)

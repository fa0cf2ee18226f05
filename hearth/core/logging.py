"""Logfire setup and the span/context helpers shared by the services.

Modules log through ``logging.getLogger(__name__)``. Structured fields go in
``extra`` so Logfire can index them, e.g. the outbox processor tags retries
with ``event_id`` and ``retry_count``.
"""

import logging

import logfire
from fastapi import FastAPI

from hearth.core.config import settings


logger = logging.getLogger(__name__)

_LEVELS = ("debug", "info", "warning", "error", "critical")


def configure_logfire() -> None:
    """Set up Logfire for the hearth service. Without a token logs stay local."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="hearth",
        service_version="0.1.0",
        environment=settings.logfire_environment,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"environment": settings.logfire_environment})


def instrument_fastapi(app: FastAPI) -> None:
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a Logfire span named ``<module>.<operation>``."""
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log ``message`` at ``level`` with ``context`` attached as record attributes.

    Raises:
        ValueError: If ``level`` is not a standard logging level name
    """
    name = level.lower()
    if name not in _LEVELS:
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)
    getattr(logger, name)(message, extra=context)

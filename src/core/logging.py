"""Logging and observability configuration using Pydantic Logfire.

This module provides standardized logging utilities and configuration.
All modules should use Python's standard logging library (logging.getLogger(__name__)),
and Logfire will automatically capture and enrich these logs.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})
"""

import logging

import logfire

from src.core.config import settings


def configure_logfire() -> None:
    """Configure Pydantic Logfire with token from environment.

    Spans are only exported when a token is present; without one the calls are local no-ops.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="task-engine",
        service_version="0.1.0",
        environment=settings.service_environment,
        send_to_logfire="if-token-present",
    )

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def instrument_pydantic_ai() -> None:
    """Configure automatic tracing for Pydantic AI agent calls."""
    logfire.instrument_pydantic_ai()
    logger = logging.getLogger(__name__)
    logger.info("Pydantic AI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Create a custom span for service layer functions.

    Usage:
        with span("selector.next_task"):
            # Your service logic here
            pass
    """
    return logfire.span(name)


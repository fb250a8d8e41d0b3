"""Shared fixtures for unit and integration tests."""

from datetime import UTC, datetime

import pytest

from src.agents.retry_handler import AgentRetryHandler, RetryConfig, _RetryHandlerState
from src.core.admin_notifier import notification_rate_limiter
from src.core.config import settings
from src.domain.context import GeoPoint, SelectionContext


# Wednesday afternoon, inside business hours in UTC
FIXED_NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)

HOME = GeoPoint(latitude=52.5200, longitude=13.4050)


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch):
    """Pin the local timezone and drop shared singletons between tests."""
    monkeypatch.setattr(settings, "timezone", "UTC")
    monkeypatch.setattr(settings, "operator_webhook_url", None)
    _RetryHandlerState.instance = None
    notification_rate_limiter.reset()
    yield
    _RetryHandlerState.instance = None


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def context(now) -> SelectionContext:
    """Selection context for a user at home."""
    return SelectionContext(now=now, user_location=HOME)


@pytest.fixture
def fast_retry_handler() -> AgentRetryHandler:
    """Retry handler that does not sleep between attempts."""
    return AgentRetryHandler(RetryConfig(max_attempts=3, base_delay=0.0, circuit_breaker_threshold=100))

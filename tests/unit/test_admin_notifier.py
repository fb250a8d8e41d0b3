"""Unit tests for the operator alert path."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from src.core.admin_notifier import (
    NotificationRateLimiter,
    notification_rate_limiter,
    notify_operator,
    should_notify_operator,
)
from src.core.config import settings
from src.core.errors import ErrorCategory, ErrorSeverity


WEBHOOK = "https://alerts.test/hook"


@pytest.mark.unit
class TestShouldNotifyOperator:
    @pytest.mark.parametrize("category", [ErrorCategory.DATA_INTEGRITY, ErrorCategory.SCHEDULED_JOB_FAILURE])
    def test_unrecoverable_failures_escalate(self, category):
        assert should_notify_operator(category) is True

    @pytest.mark.parametrize(
        "category",
        [
            ErrorCategory.DEPENDENCY_CYCLE,
            ErrorCategory.VALIDATION,
            ErrorCategory.COLLABORATOR_TIMEOUT,
            ErrorCategory.TASK_NOT_ELIGIBLE,
            ErrorCategory.UNKNOWN,
        ],
    )
    def test_caller_recoverable_failures_do_not(self, category):
        assert should_notify_operator(category) is False


@pytest.mark.unit
class TestNotificationRateLimiter:
    def test_allows_first_notification(self):
        limiter = NotificationRateLimiter()
        assert limiter.can_notify(ErrorCategory.DATA_INTEGRITY) is True

    def test_blocks_duplicate_within_cooldown(self):
        limiter = NotificationRateLimiter()
        limiter.record_notification(ErrorCategory.DATA_INTEGRITY)

        assert limiter.can_notify(ErrorCategory.DATA_INTEGRITY) is False

    def test_allows_notification_after_cooldown(self):
        limiter = NotificationRateLimiter()
        limiter._notifications[ErrorCategory.DATA_INTEGRITY.value] = datetime.now(UTC) - timedelta(hours=2)

        assert limiter.can_notify(ErrorCategory.DATA_INTEGRITY) is True

    def test_categories_are_independent(self):
        limiter = NotificationRateLimiter()
        limiter.record_notification(ErrorCategory.DATA_INTEGRITY)

        assert limiter.can_notify(ErrorCategory.SCHEDULED_JOB_FAILURE) is True

    def test_reset(self):
        limiter = NotificationRateLimiter()
        limiter.record_notification(ErrorCategory.DATA_INTEGRITY)
        limiter.reset()

        assert limiter.can_notify(ErrorCategory.DATA_INTEGRITY) is True


@pytest.mark.unit
class TestNotifyOperator:
    @pytest.fixture
    def mock_post(self, monkeypatch) -> AsyncMock:
        post = AsyncMock(return_value=True)
        monkeypatch.setattr("src.core.admin_notifier._post_webhook", post)
        return post

    async def test_without_webhook_only_logs(self, mock_post, caplog):
        with caplog.at_level("CRITICAL", logger="src.core.admin_notifier"):
            delivered = await notify_operator("cycle found", category=ErrorCategory.DATA_INTEGRITY)

        assert delivered is False
        mock_post.assert_not_awaited()
        assert any(record.levelname == "CRITICAL" for record in caplog.records)

    async def test_posts_payload_to_webhook(self, mock_post, monkeypatch):
        monkeypatch.setattr(settings, "operator_webhook_url", WEBHOOK)

        delivered = await notify_operator(
            "cycle found", category=ErrorCategory.DATA_INTEGRITY, severity=ErrorSeverity.HIGH, entity_id="42"
        )

        assert delivered is True
        url, payload = mock_post.await_args.args
        assert url == WEBHOOK
        assert payload["message"] == "cycle found"
        assert payload["category"] == "data_integrity"
        assert payload["severity"] == "high"
        assert payload["entity_id"] == "42"

    async def test_second_alert_is_rate_limited(self, mock_post, monkeypatch):
        monkeypatch.setattr(settings, "operator_webhook_url", WEBHOOK)

        assert await notify_operator("first", category=ErrorCategory.DATA_INTEGRITY) is True
        assert await notify_operator("second", category=ErrorCategory.DATA_INTEGRITY) is False

        assert mock_post.await_count == 1

    async def test_disabled_alerts_skip_webhook(self, mock_post, monkeypatch):
        monkeypatch.setattr(settings, "operator_webhook_url", WEBHOOK)
        monkeypatch.setattr(settings, "enable_operator_alerts", False)

        assert await notify_operator("cycle", category=ErrorCategory.DATA_INTEGRITY) is False
        mock_post.assert_not_awaited()

    async def test_delivery_error_is_reported_not_raised(self, monkeypatch):
        monkeypatch.setattr(settings, "operator_webhook_url", WEBHOOK)
        monkeypatch.setattr(
            "src.core.admin_notifier._post_webhook", AsyncMock(side_effect=httpx.ConnectError("refused"))
        )

        assert await notify_operator("cycle", category=ErrorCategory.DATA_INTEGRITY) is False
        # A failed delivery does not start the cooldown
        assert notification_rate_limiter.can_notify(ErrorCategory.DATA_INTEGRITY) is True

    async def test_rejected_webhook(self, monkeypatch):
        monkeypatch.setattr(settings, "operator_webhook_url", WEBHOOK)
        real_client = httpx.AsyncClient

        def _client(**kwargs):
            transport = httpx.MockTransport(lambda request: httpx.Response(500, text="down"))
            return real_client(transport=transport, **kwargs)

        monkeypatch.setattr("src.core.admin_notifier.httpx.AsyncClient", _client)

        assert await notify_operator("cycle", category=ErrorCategory.DATA_INTEGRITY) is False

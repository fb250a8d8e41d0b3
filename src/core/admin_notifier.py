"""Operator alert path for data-integrity violations and failed background jobs."""

import logging
from datetime import UTC, datetime, timedelta

import httpx

from src.core.config import constants, settings
from src.core.errors import ErrorCategory, ErrorSeverity


logger = logging.getLogger(__name__)


class NotificationRateLimiter:
    """Rate limiter for operator alerts to prevent alert storms.

    Tracks the last alert per error category so the operator is not
    overwhelmed with duplicates of the same failure.
    """

    def __init__(self) -> None:
        """Initialize notification rate limiter."""
        self._notifications: dict[str, datetime] = {}

    def can_notify(self, error_category: ErrorCategory) -> bool:
        """Check if an alert can be sent for the given error category.

        Args:
            error_category: The category of error to check

        Returns:
            True if alerting is allowed, False if rate limited
        """
        last_notification = self._notifications.get(error_category.value)
        if last_notification is None:
            return True

        cooldown = timedelta(minutes=settings.operator_alert_cooldown_minutes)
        return datetime.now(UTC) - last_notification >= cooldown

    def record_notification(self, error_category: ErrorCategory) -> None:
        """Record an alert for rate limiting."""
        self._notifications[error_category.value] = datetime.now(UTC)

    def reset(self) -> None:
        """Forget every recorded alert."""
        self._notifications.clear()


# Global rate limiter instance (in-memory)
notification_rate_limiter = NotificationRateLimiter()


def should_notify_operator(error_category: ErrorCategory) -> bool:
    """Determine if the operator should be alerted for a given error category.

    Only failures that no caller can recover from are escalated. Conflicts,
    validation errors and collaborator timeouts are handled by the caller.
    """
    return error_category in {ErrorCategory.DATA_INTEGRITY, ErrorCategory.SCHEDULED_JOB_FAILURE}


async def _post_webhook(url: str, payload: dict[str, str]) -> bool:
    async with httpx.AsyncClient(timeout=settings.collaborator_timeout_seconds) as client:
        response = await client.post(url, json=payload)

    if constants.HTTP_CLIENT_ERROR_START <= response.status_code:
        logger.error(
            "Operator webhook rejected alert",
            extra={"status_code": response.status_code, "body": response.text[:200]},
        )
        return False
    return True


async def notify_operator(
    message: str,
    *,
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.CRITICAL,
    entity_id: str | None = None,
) -> bool:
    """Alert the operator about a failure that needs human attention.

    Always logs at critical level. When a webhook is configured the alert is
    also POSTed there, at most once per category per cooldown window.
    Delivery problems are logged and reported through the return value.

    Returns:
        True if the alert was delivered to the webhook, False otherwise
    """
    logger.critical(
        "Operator alert",
        extra={
            "alert_message": message,
            "category": category.value,
            "severity": severity.value,
            "entity_id": entity_id,
        },
    )

    if not settings.enable_operator_alerts or not settings.operator_webhook_url:
        return False

    if not notification_rate_limiter.can_notify(category):
        logger.info("Operator alert rate limited", extra={"category": category.value})
        return False

    payload = {
        "message": message,
        "category": category.value,
        "severity": severity.value,
        "entity_id": entity_id or "",
        "environment": settings.service_environment,
        "sent_at": datetime.now(UTC).isoformat(),
    }

    try:
        delivered = await _post_webhook(settings.operator_webhook_url, payload)
    except httpx.HTTPError as e:
        logger.error("Failed to deliver operator alert", extra={"error": str(e), "category": category.value})
        return False

    if delivered:
        notification_rate_limiter.record_notification(category)
    return delivered

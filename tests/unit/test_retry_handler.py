"""Unit tests for the collaborator retry handler."""

import time
from unittest.mock import AsyncMock, patch

import pytest
from pydantic_ai.exceptions import UnexpectedModelBehavior

from src.agents.retry_handler import (
    AgentRetryHandler,
    CircuitBreaker,
    CircuitBreakerState,
    ErrorRetryability,
    RetryConfig,
    get_retry_handler,
)
from src.core.errors import CollaboratorFailure, CollaboratorTimeoutError, ValidationError


@pytest.fixture(autouse=True)
def mock_asyncio_sleep():
    """Mock asyncio.sleep to avoid actual delays in retry tests."""
    with patch("src.agents.retry_handler.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.mark.unit
class TestAgentRetryHandler:
    """Tests for bounded retries around advisor calls."""

    @pytest.fixture
    def retry_handler(self):
        config = RetryConfig(
            max_attempts=3,
            base_delay=0.5,
            backoff_multiplier=2.0,
            max_delay=1.5,
            circuit_breaker_threshold=2,
            circuit_breaker_cooldown=0.1,
        )
        return AgentRetryHandler(config)

    @pytest.mark.parametrize(
        "error",
        [
            CollaboratorTimeoutError("Decomposition timed out after 10s"),
            CollaboratorFailure("Decomposition failed: 503"),
            TimeoutError(),
            ConnectionError("connection reset"),
            UnexpectedModelBehavior("output validation failed"),
            Exception("Rate limit exceeded"),
        ],
    )
    def test_transient_errors_are_retryable(self, retry_handler, error):
        assert retry_handler.classify_error(error) == ErrorRetryability.RETRYABLE

    @pytest.mark.parametrize(
        "error",
        [
            CollaboratorFailure("OpenRouter API key credential not configured"),
            Exception("Invalid API key"),
            ValidationError("Invalid TaskCreate: title"),
            ValueError("Invalid input"),
            Exception("something odd"),
        ],
    )
    def test_permanent_errors_are_not_retried(self, retry_handler, error):
        assert retry_handler.classify_error(error) == ErrorRetryability.NON_RETRYABLE

    def test_calculate_delay_is_exponential_and_capped(self, retry_handler):
        assert retry_handler.calculate_delay(0) == 0.5
        assert retry_handler.calculate_delay(1) == 1.0
        assert retry_handler.calculate_delay(2) == 1.5

    async def test_success_first_attempt(self, retry_handler, mock_asyncio_sleep):
        mock_func = AsyncMock(return_value=["Buy paint"])

        result = await retry_handler.execute_with_retry(mock_func, "no paint", deps="ctx")

        assert result == ["Buy paint"]
        mock_func.assert_awaited_once_with("no paint", deps="ctx")
        mock_asyncio_sleep.assert_not_awaited()

    async def test_success_after_retries(self, retry_handler, mock_asyncio_sleep):
        mock_func = AsyncMock(
            side_effect=[CollaboratorTimeoutError("timed out"), CollaboratorFailure("503"), "success"]
        )

        result = await retry_handler.execute_with_retry(mock_func)

        assert result == "success"
        assert mock_func.await_count == 3
        assert [c.args[0] for c in mock_asyncio_sleep.await_args_list] == [0.5, 1.0]

    async def test_non_retryable_error_fails_immediately(self, retry_handler):
        mock_func = AsyncMock(side_effect=ValueError("Invalid input"))

        with pytest.raises(ValueError, match="Invalid input"):
            await retry_handler.execute_with_retry(mock_func)

        assert mock_func.await_count == 1

    async def test_exhausted_retries_raise_last_error(self, retry_handler):
        mock_func = AsyncMock(side_effect=CollaboratorTimeoutError("timed out"))

        with pytest.raises(CollaboratorTimeoutError):
            await retry_handler.execute_with_retry(mock_func)

        assert mock_func.await_count == 3

    async def test_retry_attempts_are_logged(self, retry_handler):
        mock_func = AsyncMock(side_effect=[CollaboratorFailure("503"), "success"])

        with patch("src.agents.retry_handler.logger") as mock_logger:
            result = await retry_handler.execute_with_retry(mock_func)

        assert result == "success"
        assert mock_logger.warning.called
        assert mock_logger.info.called

    def test_shared_handler_is_a_singleton(self):
        assert get_retry_handler() is get_retry_handler()


@pytest.mark.unit
class TestCircuitBreaker:
    """Tests for the circuit breaker."""

    @pytest.fixture
    def circuit_breaker(self):
        return CircuitBreaker(threshold=2, cooldown=0.1)

    def test_starts_closed(self, circuit_breaker):
        assert circuit_breaker.state == CircuitBreakerState.CLOSED
        assert circuit_breaker.can_attempt() is True

    def test_opens_after_threshold(self, circuit_breaker):
        circuit_breaker.record_failure()
        assert circuit_breaker.state == CircuitBreakerState.CLOSED

        circuit_breaker.record_failure()
        assert circuit_breaker.state == CircuitBreakerState.OPEN
        assert circuit_breaker.can_attempt() is False

    def test_half_open_after_cooldown(self, circuit_breaker):
        circuit_breaker.record_failure()
        circuit_breaker.record_failure()

        time.sleep(0.15)

        assert circuit_breaker.can_attempt() is True
        assert circuit_breaker.state == CircuitBreakerState.HALF_OPEN

    def test_closes_on_success(self, circuit_breaker):
        circuit_breaker.record_failure()
        circuit_breaker.record_failure()

        circuit_breaker.record_success()

        assert circuit_breaker.state == CircuitBreakerState.CLOSED
        assert circuit_breaker.failure_count == 0

    async def test_open_circuit_rejects_calls_as_collaborator_failure(self):
        handler = AgentRetryHandler(
            RetryConfig(max_attempts=2, base_delay=0.0, circuit_breaker_threshold=2, circuit_breaker_cooldown=10.0)
        )
        failing = AsyncMock(side_effect=CollaboratorFailure("503"))

        for _ in range(2):
            with pytest.raises(CollaboratorFailure, match="503"):
                await handler.execute_with_retry(failing)

        untouched = AsyncMock(return_value="never")
        with pytest.raises(CollaboratorFailure, match="circuit open"):
            await handler.execute_with_retry(untouched)

        untouched.assert_not_awaited()

"""Retry handler for collaborator calls with exponential backoff and a circuit breaker."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pydantic_ai.exceptions import ModelRetry, UnexpectedModelBehavior

from src.core.config import constants, settings
from src.core.errors import CollaboratorError, CollaboratorFailure, EngineError


logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


class ErrorRetryability(Enum):
    """Classification of whether an error should be retried."""

    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = field(default_factory=lambda: settings.decomposition_max_attempts)
    base_delay: float = field(default_factory=lambda: settings.decomposition_base_delay_seconds)
    backoff_multiplier: float = 2.0
    max_delay: float = constants.RETRY_MAX_DELAY_SECONDS
    circuit_breaker_threshold: int = constants.CIRCUIT_BREAKER_THRESHOLD
    circuit_breaker_cooldown: float = constants.CIRCUIT_BREAKER_COOLDOWN_SECONDS


class CircuitBreakerState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """Stops calling a collaborator that keeps failing until a cooldown passes."""

    def __init__(self, threshold: int = 5, cooldown: float = 60.0) -> None:
        self.threshold = threshold
        self.cooldown = cooldown
        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = CircuitBreakerState.CLOSED

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = CircuitBreakerState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.failure_count >= self.threshold:
            self.state = CircuitBreakerState.OPEN
            logger.warning(
                "circuit_breaker_opened",
                extra={"failure_count": self.failure_count, "cooldown": self.cooldown},
            )

    def can_attempt(self) -> bool:
        """Check if a request can be attempted."""
        if self.state == CircuitBreakerState.CLOSED:
            return True

        if self.state == CircuitBreakerState.OPEN:
            if time.monotonic() - self.last_failure_time >= self.cooldown:
                self.state = CircuitBreakerState.HALF_OPEN
                logger.info("circuit_breaker_half_open", extra={"cooldown_elapsed": True})
                return True
            return False

        # HALF_OPEN: allow one trial call
        return True


_NON_RETRYABLE_PHRASES = (
    "authentication failed",
    "invalid api key",
    "unauthorized",
    "credential not configured",
    "401",
    "403",
    "bad request",
    "400",
)

_RETRYABLE_PHRASES = (
    "rate limit",
    "too many requests",
    "429",
    "service unavailable",
    "502",
    "503",
    "504",
    "timeout",
    "timed out",
    "connection",
    "network",
)


class AgentRetryHandler:
    """Runs collaborator calls with bounded retries and exponential backoff."""

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()
        self.circuit_breaker = CircuitBreaker(
            threshold=self.config.circuit_breaker_threshold,
            cooldown=self.config.circuit_breaker_cooldown,
        )

    def classify_error(self, exception: BaseException) -> ErrorRetryability:
        """Decide whether an error is worth another attempt.

        Timeouts, transient network/provider failures and malformed model
        output are retried. Credentials, bad requests and engine validation
        errors are not.
        """
        error_str = str(exception).lower()

        if any(phrase in error_str for phrase in _NON_RETRYABLE_PHRASES):
            return ErrorRetryability.NON_RETRYABLE

        if isinstance(exception, TimeoutError | ConnectionError | CollaboratorError):
            return ErrorRetryability.RETRYABLE

        if isinstance(exception, ModelRetry | UnexpectedModelBehavior):
            return ErrorRetryability.RETRYABLE

        if isinstance(exception, EngineError | ValueError | KeyError):
            return ErrorRetryability.NON_RETRYABLE

        if any(phrase in error_str for phrase in _RETRYABLE_PHRASES):
            return ErrorRetryability.RETRYABLE

        # Unknown errors are not retried
        return ErrorRetryability.NON_RETRYABLE

    def calculate_delay(self, attempt: int) -> float:
        """Exponential backoff delay for a 0-indexed attempt, capped at max_delay."""
        delay = self.config.base_delay * (self.config.backoff_multiplier**attempt)
        return min(delay, self.config.max_delay)

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[ResultT]],
        *args: object,
        **kwargs: object,
    ) -> ResultT:
        """Execute an async callable with retries.

        Raises:
            CollaboratorFailure: If the circuit breaker is open
            The last exception if it is non-retryable or all attempts are exhausted
        """
        for attempt in range(self.config.max_attempts):
            if not self.circuit_breaker.can_attempt():
                logger.warning(
                    "circuit_breaker_blocked",
                    extra={"attempt": attempt, "state": self.circuit_breaker.state.value},
                )
                raise CollaboratorFailure("Collaborator temporarily unavailable (circuit open)")

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                retryability = self.classify_error(e)
                error_type = type(e).__name__
                logger.warning(
                    "agent_error",
                    extra={
                        "attempt": attempt + 1,
                        "max_attempts": self.config.max_attempts,
                        "error_type": error_type,
                        "error_message": str(e),
                        "retryable": retryability.value,
                    },
                )

                if retryability == ErrorRetryability.NON_RETRYABLE:
                    self.circuit_breaker.record_failure()
                    raise

                if attempt >= self.config.max_attempts - 1:
                    logger.error(
                        "agent_retry_exhausted",
                        extra={"attempts": self.config.max_attempts, "error_type": error_type},
                    )
                    self.circuit_breaker.record_failure()
                    raise

                delay = self.calculate_delay(attempt)
                logger.info(
                    "agent_retry",
                    extra={"attempt": attempt + 1, "delay_seconds": delay, "error_type": error_type},
                )
                await asyncio.sleep(delay)
            else:
                self.circuit_breaker.record_success()
                if attempt > 0:
                    logger.info("agent_retry_success", extra={"total_attempts": attempt + 1})
                return result

        msg = "Retry loop ended without a result"
        raise CollaboratorFailure(msg)


class _RetryHandlerState:
    """Singleton state for the shared retry handler."""

    instance: AgentRetryHandler | None = None


def get_retry_handler() -> AgentRetryHandler:
    """Get or create the global retry handler instance."""
    if _RetryHandlerState.instance is None:
        _RetryHandlerState.instance = AgentRetryHandler()
    return _RetryHandlerState.instance

"""Error handling and retry policy for the EventSub client.

This module provides:
- Custom exception hierarchy for client errors
- Retry logic with exponential backoff for upstream calls

Exception Hierarchy:
    EventSubError (base)
    ├── ConfigurationError - Missing credentials, host or request URL
    ├── ClientNotStartedError - API call attempted before a token exists
    ├── TwitchAPIError - Upstream network/API failures
    └── TokenRefreshError - Credential exchange failed after retries

Webhook verification failures are never raised; they are reported as HTTP
status codes by the verifier.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Exception Hierarchy
# ============================================================================


class EventSubError(Exception):
    """Base exception for all EventSub client errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
        recoverable: Whether retrying the operation may succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/event payloads."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ConfigurationError(EventSubError):
    """Required configuration is missing or invalid.

    Raised synchronously at construction time (credentials, host) or when
    a request is sent without a target URL.
    """


class ClientNotStartedError(EventSubError):
    """An API call was attempted before an access token was available."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot call {operation} before the client has been started",
            details={"operation": operation},
        )
        self.operation = operation


class TwitchAPIError(EventSubError):
    """The Twitch API returned an error or could not be reached.

    A status of 0 means the request never produced a response
    (connection error, timeout).

    Attributes:
        status: HTTP status code, or 0 for transport errors.
    """

    def __init__(self, status: int, message: str) -> None:
        super().__init__(
            f"Twitch API error {status}: {message}",
            details={"status": status},
            recoverable=status == 0 or status == 429 or status >= 500,
        )
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base["status"] = self.status
        return base


class TokenRefreshError(EventSubError):
    """The client credentials exchange failed.

    Attributes:
        original_error: The last error raised by the exchange.
        attempts: Number of attempts made.
    """

    def __init__(
        self,
        message: str,
        *,
        original_error: Exception | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(
            message,
            details={"attempts": attempts},
            recoverable=True,
        )
        self.original_error = original_error
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base["original_error"] = str(self.original_error) if self.original_error else None
        return base


# ============================================================================
# Retry Configuration
# ============================================================================


def is_recoverable(exc: BaseException) -> bool:
    """Check whether an exception is worth retrying."""
    return isinstance(exc, EventSubError) and exc.recoverable


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including initial).
        min_wait_seconds: Minimum wait between retries.
        max_wait_seconds: Maximum wait between retries.
        multiplier: Exponential backoff multiplier.
    """

    max_attempts: int = 3
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 30.0
    multiplier: float = 2.0
    retry_on: Callable[[BaseException], bool] = field(default=is_recoverable)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    operation: str = "request",
) -> T:
    """Call an async function, retrying recoverable failures with backoff.

    Non-recoverable errors and the last recoverable error are re-raised
    unchanged.

    Args:
        fn: Zero-argument coroutine function to call.
        config: Retry configuration (defaults to RetryConfig()).
        operation: Name used in log events.

    Returns:
        Result of the first successful call.
    """
    retry_config = config or RetryConfig()
    attempt = 0

    async for attempt_context in AsyncRetrying(
        stop=stop_after_attempt(retry_config.max_attempts),
        wait=wait_exponential(
            multiplier=retry_config.multiplier,
            min=retry_config.min_wait_seconds,
            max=retry_config.max_wait_seconds,
        ),
        retry=retry_if_exception(retry_config.retry_on),
        reraise=True,
    ):
        with attempt_context:
            attempt += 1
            if attempt > 1:
                logger.info(
                    "retry_attempt",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=retry_config.max_attempts,
                )
            return await fn()

    # This should not be reached due to reraise=True
    raise RuntimeError("Retry loop exited unexpectedly")

"""Async utility functions for resilient API calls.

This module provides:
- The exception taxonomy shared by the adapters and the core
- A retry factory with fixed backoff for rate-limited calls
- Timeout wrappers for async operations

See DESIGN.md for the error handling strategy.
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# User-facing messages
# =============================================================================

MISSING_KEY_MESSAGE = "API key is not configured. Set one with `set-key` or in the config file."
RATE_LIMIT_MESSAGE = "API rate limit exceeded. Please try again shortly."
INVALID_KEY_MESSAGE = "API key is invalid. Check the configured API key."
MALFORMED_MESSAGE = "Could not interpret the API response. Please try again."


# =============================================================================
# Custom Exceptions
# =============================================================================


class FixerError(Exception):
    """Base exception for all error-autofixer errors."""


class ConfigurationError(FixerError):
    """Required configuration (usually the API key) is missing or invalid."""


class AnalysisError(FixerError):
    """Remote analysis failed."""


class RateLimitError(AnalysisError):
    """Rate limit exceeded.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(AnalysisError):
    """The remote API rejected the credential."""


class ApiError(AnalysisError):
    """The remote API answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status code returned by the API.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(AnalysisError):
    """Transport-level failure (DNS, connection refused, reset, ...)."""


class MalformedResponseError(AnalysisError):
    """The API response could not be interpreted."""


class TimeoutError(AnalysisError):
    """Operation timed out."""


class SourceReadError(FixerError):
    """Failed to read a source file."""


class PathTraversalError(FixerError):
    """A path resolved outside of the project root."""


# =============================================================================
# Retry
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    max_retries: int = 2,
    delay: float = 3.0,
    retry_on: tuple[type[Exception], ...] = (RateLimitError,),
) -> AsyncRetrying:
    """Create an async retry controller with a fixed backoff.

    The first call is not a retry: ``max_retries=2`` allows three attempts
    in total. Exceptions not listed in ``retry_on`` propagate immediately.

    Args:
        max_retries: Number of retries after the first attempt.
        delay: Seconds to wait between attempts.
        retry_on: Tuple of exception types to retry on.

    Returns:
        A tenacity ``AsyncRetrying`` instance.

    Example:
        async for attempt in create_retry(max_retries=2, delay=3.0):
            with attempt:
                await call_api()
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_fixed(delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Timeout Utilities
# =============================================================================


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
) -> T:
    """Execute an awaitable with a timeout.

    Args:
        coro: The coroutine to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.

    Returns:
        The result of the coroutine.

    Raises:
        TimeoutError: If the operation times out.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except builtins.TimeoutError as e:
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(msg) from e

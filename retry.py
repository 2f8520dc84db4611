"""
Retry decorator with exponential backoff.

Used by adapters for idempotent reads (folder listing). Content-mutating
calls go through convert_to_portal_error only and are never retried.
"""

import asyncio
from functools import wraps
from typing import TypeVar, Callable, ParamSpec, Awaitable

import httpx

from logging_config import logger, log_retry
from models import PortalError, TransportError, ErrorKind

T = TypeVar("T")
P = ParamSpec("P")


# Exceptions that should trigger retry
RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({
    429,  # Rate limited
    500,  # Internal server error
    502,  # Bad gateway
    503,  # Service unavailable
    504,  # Gateway timeout
})

# ArcGIS token errors: 498 invalid token, 499 token required
AUTH_STATUS_CODES: frozenset[int] = frozenset({401, 498, 499})


def _get_http_status(exception: Exception) -> int | None:
    """
    Extract HTTP (or ArcGIS body) status code from exception if available.

    Works with httpx.HTTPStatusError and adapters.http.ArcGISResponseError.
    """
    # Check for status_code attribute (ArcGISResponseError)
    if hasattr(exception, "status_code"):
        status = exception.status_code
        if isinstance(status, int):
            return status

    # Check for response.status_code (httpx.HTTPStatusError)
    response = getattr(exception, "response", None)
    if response is not None and hasattr(response, "status_code"):
        status = response.status_code
        if isinstance(status, int):
            return status

    return None


def _should_retry(exception: Exception) -> bool:
    """Determine if an exception is retryable."""
    if isinstance(exception, PortalError):
        return exception.retryable

    # Check if it's a known retryable exception type
    if isinstance(exception, RETRYABLE_EXCEPTIONS):
        return True

    # Check for HTTP status code
    status = _get_http_status(exception)
    if status is not None and status in RETRYABLE_STATUS_CODES:
        return True

    return False


def convert_to_portal_error(exception: Exception) -> PortalError:
    """Convert an exception to a PortalError if not already one."""
    if isinstance(exception, PortalError):
        return exception

    # Check status first (more reliable than string matching)
    status = _get_http_status(exception)
    if status is not None:
        if status in AUTH_STATUS_CODES:
            return TransportError(ErrorKind.AUTH_EXPIRED, str(exception))
        elif status == 403:
            return TransportError(ErrorKind.PERMISSION_DENIED, str(exception))
        elif status == 404:
            return TransportError(ErrorKind.NOT_FOUND, str(exception))
        elif status == 400:
            return TransportError(ErrorKind.INVALID_INPUT, str(exception))
        elif status == 429:
            return TransportError(ErrorKind.RATE_LIMITED, str(exception), retryable=True)
        elif status >= 500:
            return TransportError(ErrorKind.NETWORK_ERROR, str(exception), retryable=True)

    # Fall back to exception type
    if isinstance(exception, (httpx.TimeoutException, TimeoutError)):
        return TransportError(ErrorKind.TIMEOUT, str(exception) or "Request timed out", retryable=True)
    if isinstance(exception, (httpx.TransportError, ConnectionError)):
        return TransportError(ErrorKind.NETWORK_ERROR, str(exception) or "Connection failed", retryable=True)

    return TransportError(ErrorKind.UNKNOWN, str(exception))


def with_retry(
    max_attempts: int = 3,
    delay_ms: int = 1000,
    backoff_multiplier: float = 2.0,
    convert_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Retry decorator with exponential backoff for coroutine functions.

    Args:
        max_attempts: Maximum number of attempts (1 = no retry, convert only)
        delay_ms: Initial delay in milliseconds
        backoff_multiplier: Multiplier for exponential backoff
        convert_errors: Convert exceptions to PortalError on final failure

    Returns:
        Decorated function with retry logic

    Example:
        @with_retry(max_attempts=3, delay_ms=500)
        async def list_folders(self, credential):
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_exception = e

                    # Check if we should retry
                    if not _should_retry(e) or attempt == max_attempts - 1:
                        logger.error(
                            f"{func.__name__} failed after {attempt + 1} attempts: {e}"
                        )
                        if convert_errors and not isinstance(e, PortalError):
                            raise convert_to_portal_error(e) from e
                        raise

                    # Calculate wait time with exponential backoff
                    wait_ms = int(delay_ms * (backoff_multiplier ** attempt))
                    log_retry(attempt + 1, max_attempts, wait_ms, str(e))
                    await asyncio.sleep(wait_ms / 1000)

            # Should never reach here, but satisfy type checker
            assert last_exception is not None
            if convert_errors and not isinstance(last_exception, PortalError):
                raise convert_to_portal_error(last_exception) from last_exception
            raise last_exception

        return async_wrapper

    return decorator

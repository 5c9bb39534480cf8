"""
Provider Fault Types for Tamilarr

Every failure talking to the debrid provider surfaces as a ProviderAPIError
subclass:

    ProviderAPIError          permanent for this call (bad token, bad magnet)
    ├── ResourceNotFoundError the provider forgot the torrent id
    ├── NetworkRetryableError timeouts, 429 and gateway errors
    └── RateLimitExceeded     our own token bucket refused the call

Only NetworkRetryableError is retried by @retry_on_network_error. The
resolution engine re-adds the magnet once on ResourceNotFoundError and lets
polling absorb anything else.
"""

import asyncio
import functools
import logging
import time
from typing import Callable, TypeVar, ParamSpec, Optional

logger = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')

# Real-Debrid "unknown_ressource"
UNKNOWN_RESOURCE_ERROR_CODE = 7

GATEWAY_STATUSES = (502, 503, 504)


# ============================================================================
# Fault Types
# ============================================================================

class ProviderAPIError(Exception):
    """
    A provider call failed and repeating it right away will not help.

    Attributes:
        message: Description, including the provider's error string if any
        status_code: HTTP status of the failed call
        response_data: Decoded error body, kept for logs
        error_code: Real-Debrid numeric error code
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
        error_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data
        self.error_code = error_code

    def __str__(self) -> str:
        name = type(self).__name__
        if not self.status_code:
            return f"{name}: {self.message}"
        return f"{name} (HTTP {self.status_code}): {self.message}"


class ResourceNotFoundError(ProviderAPIError):
    """The torrent id is unknown to the provider (HTTP 404 or error code 7)."""


class NetworkRetryableError(ProviderAPIError):
    """
    Transient fault worth another attempt.

    ``retry_after`` carries the provider's suggested wait in seconds when
    it sent one.
    """

    def __init__(self, message: str, original_exception: Exception = None, retry_after: int = None):
        super().__init__(message)
        self.original_exception = original_exception
        self.retry_after = retry_after


class RateLimitExceeded(ProviderAPIError):
    """Raised by the local rate limiter before any request is sent."""

    def __init__(self, service: str, retry_after: float, message: str = None):
        super().__init__(message or f"Rate limit exceeded for {service}. Retry after {retry_after:.1f}s")
        self.service = service
        self.retry_after = retry_after


# ============================================================================
# Retry
# ============================================================================

def retry_on_network_error(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: int = 2,
    retryable_exceptions: tuple = (NetworkRetryableError,)
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Retry a sync or async callable on transient provider faults.

    The n-th retry waits ``base_delay * exponential_base ** n`` seconds, or
    the fault's ``retry_after`` hint, never more than ``max_delay``. Other
    exceptions propagate on the first occurrence.

    Example:
        @retry_on_network_error(max_retries=2)
        async def get_torrent_info(torrent_id):
            ...
    """

    def wait_before_retry(attempt: int, error: Exception) -> float:
        hint = getattr(error, 'retry_after', None)
        if hint:
            return min(hint, max_delay)
        return min(base_delay * (exponential_base ** attempt), max_delay)

    def should_give_up(func_name: str, attempt: int, error: Exception) -> bool:
        if attempt < max_retries:
            return False
        logger.error(f"{func_name} still failing after {max_retries} retries: {error}")
        return True

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = func.__name__

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                attempt = 0
                while True:
                    try:
                        return await func(*args, **kwargs)
                    except retryable_exceptions as e:
                        if should_give_up(name, attempt, e):
                            raise
                        delay = wait_before_retry(attempt, e)
                        attempt += 1
                        logger.warning(f"{name} failed ({e}), retry {attempt}/{max_retries} in {delay}s")
                        await asyncio.sleep(delay)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if should_give_up(name, attempt, e):
                        raise
                    delay = wait_before_retry(attempt, e)
                    attempt += 1
                    logger.warning(f"{name} failed ({e}), retry {attempt}/{max_retries} in {delay}s")
                    time.sleep(delay)

        return sync_wrapper

    return decorator


def classify_http_error(status_code: int, message: str, response_data: dict = None) -> ProviderAPIError:
    """
    Turn a failed provider response into the matching fault type.

    Args:
        status_code: HTTP status of the response
        message: Base description of the failed call
        response_data: Decoded body, ``{"error": ..., "error_code": ...}`` on Real-Debrid

    Returns:
        ResourceNotFoundError for 404 or error code 7, NetworkRetryableError
        for 429 and gateway statuses, ProviderAPIError otherwise
    """
    body = response_data if isinstance(response_data, dict) else {}
    error_code = body.get('error_code')
    if body.get('error'):
        message = f"{message}: {body['error']}"

    if status_code == 404 or error_code == UNKNOWN_RESOURCE_ERROR_CODE:
        return ResourceNotFoundError(message, status_code, response_data, error_code)

    if status_code == 429:
        retry_after = int(body['retry_after']) if 'retry_after' in body else None
        return NetworkRetryableError(f"Rate limited: {message}", retry_after=retry_after)

    if status_code in GATEWAY_STATUSES:
        return NetworkRetryableError(f"Service temporarily unavailable (HTTP {status_code}): {message}")

    return ProviderAPIError(message, status_code, response_data, error_code)

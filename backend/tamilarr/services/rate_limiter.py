"""
Outbound Rate Limiting

Token buckets guarding calls to external hosts:

    realdebrid  provider REST API (250 requests per minute per account)
    trackers    tracker list host (one download every few seconds at most)

A call takes one token from its host's bucket before it goes out. Tokens
refill continuously up to the bucket's burst size. A caller finding the
bucket empty sleeps until the next token is due, or gives up with
RateLimitExceeded when that wait would exceed ``max_wait``.

Limits are process-wide: every request handler shares the same buckets.
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Callable, TypeVar, ParamSpec, Any

from tamilarr.services.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')


@dataclass(frozen=True)
class BucketLimits:
    """Refill rate (tokens per second) and capacity of a bucket."""
    rate: float
    burst: int

    def seconds_for(self, tokens: float) -> float:
        return tokens / self.rate if self.rate > 0 else float('inf')


DEFAULT_LIMITS: Dict[str, BucketLimits] = {
    "realdebrid": BucketLimits(rate=4.0, burst=10),
    "trackers": BucketLimits(rate=0.2, burst=2),
}

# Hosts without an explicit entry
FALLBACK_LIMITS = BucketLimits(rate=1.0, burst=5)


class TokenBucket:
    """Continuously refilled token bucket for one host."""

    def __init__(self, name: str, limits: BucketLimits):
        self.name = name
        self.limits = limits
        self._level = float(limits.burst)
        self._stamp = time.monotonic()
        self._lock = asyncio.Lock()

    def _top_up(self) -> None:
        now = time.monotonic()
        self._level = min(float(self.limits.burst), self._level + (now - self._stamp) * self.limits.rate)
        self._stamp = now

    def try_take(self) -> bool:
        """Take a token if one is available right now."""
        self._top_up()
        if self._level >= 1:
            self._level -= 1
            return True
        return False

    async def take(self, max_wait: float = 30.0) -> None:
        """
        Take one token, sleeping until one is available.

        Args:
            max_wait: Longest acceptable total wait in seconds

        Raises:
            RateLimitExceeded: If the token would arrive after ``max_wait``
        """
        started = time.monotonic()
        async with self._lock:
            while not self.try_take():
                delay = self.limits.seconds_for(1 - self._level)
                if time.monotonic() - started + delay > max_wait:
                    raise RateLimitExceeded(service=self.name, retry_after=delay)
                await asyncio.sleep(min(delay, 0.1))

    def status(self) -> Dict[str, Any]:
        self._top_up()
        return {
            "service": self.name,
            "available_tokens": round(self._level, 2),
            "burst": self.limits.burst,
            "rate_per_second": self.limits.rate,
        }


class RateLimiter:
    """Buckets by host name, created on first use."""

    def __init__(self, limits: Optional[Dict[str, BucketLimits]] = None):
        self._limits = dict(DEFAULT_LIMITS if limits is None else limits)
        self._buckets: Dict[str, TokenBucket] = {}

    def bucket(self, service: str) -> TokenBucket:
        if service not in self._buckets:
            self._buckets[service] = TokenBucket(service, self._limits.get(service, FALLBACK_LIMITS))
        return self._buckets[service]

    def configure(self, service: str, rate: float, burst: int) -> None:
        """Replace the limits of a host; its bucket restarts full."""
        self._limits[service] = BucketLimits(rate=rate, burst=burst)
        self._buckets.pop(service, None)
        logger.info(f"Rate limit for {service}: {rate}/s, burst {burst}")


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def configure_rate_limit(service: str, rate: float, burst: int) -> None:
    """Set the limits of a host on the global rate limiter."""
    get_rate_limiter().configure(service, rate, burst)


def rate_limited(
    service: str,
    wait: bool = True,
    max_wait: float = 30.0
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Take a token from ``service``'s bucket before each call of a coroutine.

    Args:
        service: Host name of the bucket
        wait: Sleep for a token (True) or fail at once when none is left
        max_wait: Longest acceptable wait in seconds

    Example:
        @rate_limited(service="realdebrid")
        async def _request(self, method, endpoint):
            ...
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bucket = get_rate_limiter().bucket(service)
            if wait:
                await bucket.take(max_wait)
            elif not bucket.try_take():
                raise RateLimitExceeded(service=service, retry_after=bucket.limits.seconds_for(1))
            return await func(*args, **kwargs)
        return wrapper

    return decorator

"""
Unit tests for the token bucket rate limiter and correlation logging

Tests for backend/tamilarr/services/rate_limiter.py and
backend/tamilarr/services/structured_logging.py.
"""

import json
import logging

import pytest

from tamilarr.services.exceptions import RateLimitExceeded
from tamilarr.services.rate_limiter import (
    BucketLimits,
    DEFAULT_LIMITS,
    FALLBACK_LIMITS,
    RateLimiter,
    TokenBucket,
    rate_limited,
    configure_rate_limit,
    get_rate_limiter,
)
from tamilarr.services.structured_logging import (
    CorrelationContext,
    JSONLogFormatter,
    get_infohash,
    get_request_id,
    set_request_id,
    clear_context,
)


SLOW = BucketLimits(rate=0.001, burst=2)


class TestTokenBucket:

    def test_burst_then_empty(self):
        bucket = TokenBucket('test', SLOW)

        assert bucket.try_take()
        assert bucket.try_take()
        assert not bucket.try_take()

    @pytest.mark.asyncio
    async def test_wait_beyond_max_raises(self):
        bucket = TokenBucket('test', BucketLimits(rate=0.001, burst=1))
        await bucket.take()

        with pytest.raises(RateLimitExceeded) as exc_info:
            await bucket.take(max_wait=0.01)

        assert exc_info.value.service == 'test'

    def test_status(self):
        status = TokenBucket('realdebrid', DEFAULT_LIMITS['realdebrid']).status()

        assert status['service'] == 'realdebrid'
        assert status['burst'] == 10
        assert status['rate_per_second'] == 4.0


class TestRateLimiter:

    def test_unknown_host_gets_fallback_limits(self):
        assert RateLimiter().bucket('elsewhere').limits == FALLBACK_LIMITS

    def test_bucket_reused(self):
        limiter = RateLimiter()
        assert limiter.bucket('trackers') is limiter.bucket('trackers')

    def test_configure_replaces_bucket(self):
        limiter = RateLimiter()
        before = limiter.bucket('realdebrid')

        limiter.configure('realdebrid', 2.0, 5)

        after = limiter.bucket('realdebrid')
        assert after is not before
        assert after.limits == BucketLimits(rate=2.0, burst=5)

    @pytest.mark.asyncio
    async def test_decorator_without_wait(self):
        configure_rate_limit('unit-test', 0.001, 1)

        @rate_limited(service='unit-test', wait=False)
        async def call():
            return 'ok'

        assert await call() == 'ok'
        with pytest.raises(RateLimitExceeded):
            await call()

        assert get_rate_limiter().bucket('unit-test').limits.burst == 1


class TestCorrelation:

    def test_context_restores_previous_values(self):
        clear_context()
        set_request_id('outer')

        with CorrelationContext(infohash='ab' * 20):
            assert get_infohash() == 'ab' * 20
            assert get_request_id() == 'outer'

        assert get_infohash() is None
        assert get_request_id() == 'outer'
        clear_context()

    def test_json_formatter_includes_context(self):
        record = logging.LogRecord(
            name='tamilarr.services.resolution_engine',
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg='Resolved %s',
            args=('release',),
            exc_info=None
        )

        with CorrelationContext(request_id='req-1', infohash='cd' * 20):
            payload = json.loads(JSONLogFormatter().format(record))

        assert payload['message'] == 'Resolved release'
        assert payload['level'] == 'INFO'
        assert payload['request_id'] == 'req-1'
        assert payload['infohash'] == 'cd' * 20

import time

import pytest

from exchanges.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_requests_are_spaced_by_minimum_interval():
    limiter = RateLimiter(requests_per_minute=1200, burst=5)
    assert limiter.interval == pytest.approx(0.05)

    started = time.monotonic()
    for _ in range(3):
        await limiter.acquire()
    elapsed = time.monotonic() - started
    await limiter.close()

    # first request is immediate, the next two wait one interval each
    assert elapsed >= 2 * limiter.interval * 0.9


@pytest.mark.asyncio
async def test_burst_caps_outstanding_permits():
    limiter = RateLimiter(requests_per_minute=1200, burst=1)

    await limiter.acquire()
    assert limiter._semaphore.locked()
    await limiter.acquire()
    await limiter.close()

    assert not limiter._releases


def test_rate_floor_is_one_request_per_minute():
    limiter = RateLimiter(requests_per_minute=0, burst=0)

    assert limiter.interval == 60.0
    assert limiter.burst == 1

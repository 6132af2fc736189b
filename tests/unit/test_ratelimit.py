"""Tests for the token-bucket rate limiter."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from ebuild_autoupdate.clients.ratelimit import RateLimiter, TokenBucket, host_of
from ebuild_autoupdate.errors import RateLimitExceeded
from ebuild_autoupdate.settings import Settings


class FrozenClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_allow_llm_first_call_only() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_llm() is True
    assert await limiter.allow_llm() is False


@pytest.mark.asyncio
async def test_allow_http_per_domain() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_http("api.github.com") is True
    assert await limiter.allow_http("api.github.com") is False
    assert await limiter.allow_http("pypi.org") is True
    assert limiter.domain_count() == 2


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_token() -> None:
    limiter = RateLimiter()

    results = await asyncio.gather(*(limiter.allow_http("example.com") for _ in range(8)))

    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_distinct_domains_do_not_block_each_other() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_http("a.example.com")

    await asyncio.wait_for(limiter.wait_http("b.example.com"), timeout=1.0)


@pytest.mark.asyncio
async def test_reservation_delay_after_exhaustion() -> None:
    clock = FrozenClock()
    limiter = RateLimiter(clock=clock)

    assert limiter.reserve_llm().delay == 0.0
    assert await limiter.allow_llm()
    assert await limiter.allow_http("example.com")

    assert limiter.reserve_llm().delay == pytest.approx(12.0)
    assert limiter.reserve_http("example.com").delay == pytest.approx(6.0)

    clock.now += 4.0
    assert limiter.reserve_http("example.com").delay == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_cancelled_wait_raises_rate_limit_exceeded() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_llm()
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(RateLimitExceeded, match="cancelled"):
        await limiter.wait_llm(cancel)


@pytest.mark.asyncio
async def test_cancel_during_wait_returns_promptly() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_http("example.com")
    cancel = asyncio.Event()

    waiter = asyncio.create_task(limiter.wait_http("example.com", cancel))
    await asyncio.sleep(0.01)
    cancel.set()

    with pytest.raises(RateLimitExceeded, match="cancelled"):
        await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_wait_timeout() -> None:
    bucket = TokenBucket(60.0)
    assert await bucket.allow()
    with pytest.raises(RateLimitExceeded, match="timed out"):
        await bucket.wait(timeout=0.01)


def test_concurrent_first_access_creates_one_bucket() -> None:
    limiter = RateLimiter()
    workers = 16
    barrier = threading.Barrier(workers)

    def first_access(_: int) -> int:
        barrier.wait()
        return id(limiter._domain_bucket("example.com"))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        identities = set(pool.map(first_access, range(workers)))

    assert len(identities) == 1
    assert limiter.domain_count() == 1


@pytest.mark.asyncio
async def test_abandoned_waits_leave_no_limiter_waiters() -> None:
    bucket = TokenBucket(60.0)
    assert await bucket.allow()
    cancel = asyncio.Event()

    with pytest.raises(RateLimitExceeded, match="timed out"):
        await bucket.wait(timeout=0.01)
    waiter = asyncio.create_task(bucket.wait(cancel))
    await asyncio.sleep(0.01)
    cancel.set()
    with pytest.raises(RateLimitExceeded, match="cancelled"):
        await waiter
    outer = asyncio.create_task(bucket.wait())
    await asyncio.sleep(0.01)
    outer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await outer

    assert not bucket._limiter._waiters


@pytest.mark.asyncio
async def test_cancelled_reservation() -> None:
    limiter = RateLimiter()
    reservation = limiter.reserve_llm()
    reservation.cancel()
    with pytest.raises(RateLimitExceeded):
        await reservation.wait()


@pytest.mark.asyncio
async def test_wait_grants_token_after_refill(fast_limiter: RateLimiter) -> None:
    assert await fast_limiter.allow_llm()
    await asyncio.wait_for(fast_limiter.wait_llm(), timeout=1.0)


@pytest.mark.asyncio
async def test_reset_drops_buckets() -> None:
    limiter = RateLimiter()
    assert await limiter.allow_http("example.com")
    assert await limiter.allow_llm()

    limiter.reset()

    assert limiter.domain_count() == 0
    assert await limiter.allow_llm()


def test_from_settings() -> None:
    limiter = RateLimiter.from_settings(Settings(llm_interval_seconds=3, http_interval_seconds=1))
    assert limiter.llm_interval == 3
    assert limiter.http_interval == 1


def test_host_of() -> None:
    assert host_of("https://api.github.com/repos/o/r/releases") == "api.github.com"
    assert host_of("example.com") == "example.com"

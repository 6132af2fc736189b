"""Token-bucket admission control for LLM and per-host HTTP calls.

One global bucket gates LLM calls; each remote host gets its own bucket,
created on first use. Every bucket holds a single token and refills once per
interval. Buckets are ``aiolimiter.AsyncLimiter`` instances; ``TokenBucket``
adds non-blocking checks, reservations and cancellable waits on top.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from aiolimiter import AsyncLimiter
from loguru import logger

from ebuild_autoupdate.errors import RateLimitExceeded

if TYPE_CHECKING:
    from collections.abc import Callable

    from ebuild_autoupdate.settings import Settings

DEFAULT_LLM_INTERVAL = 12.0
DEFAULT_HTTP_INTERVAL = 6.0
POLL_INTERVAL = 0.05


class TokenBucket:
    """Single-token bucket refilled every ``interval`` seconds."""

    def __init__(self, interval: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval = interval
        self._clock = clock
        self._limiter = AsyncLimiter(1, interval)
        self._last_grant: float | None = None

    def _granted(self) -> None:
        self._last_grant = self._clock()

    def delay(self) -> float:
        """Seconds until the next token, judged from the last grant."""

        if self._last_grant is None:
            return 0.0
        return max(0.0, self.interval - (self._clock() - self._last_grant))

    async def allow(self) -> bool:
        """Take a token if one is available right now, without waiting."""

        if not self._limiter.has_capacity():
            return False
        # acquire() does not suspend while capacity is available, so no other
        # task can take the token between the check and the grant.
        await self._limiter.acquire()
        self._granted()
        return True

    async def _acquire_when_ready(self) -> None:
        # A cancelled AsyncLimiter.acquire() stays registered as a waiter, so
        # only enter it once a token is free.
        while not self._limiter.has_capacity():
            await asyncio.sleep(min(self.interval, POLL_INTERVAL))
        await self._limiter.acquire()

    def reserve(self) -> Reservation:
        return Reservation(bucket=self, delay=self.delay())

    async def wait(self, cancel: asyncio.Event | None = None, timeout: float | None = None) -> None:
        """Block until a token is granted.

        Raises:
            RateLimitExceeded: ``cancel`` was set or ``timeout`` elapsed first.
        """
        if cancel is not None and cancel.is_set():
            raise RateLimitExceeded("rate limit wait cancelled")
        if cancel is None and timeout is None:
            await self._acquire_when_ready()
            self._granted()
            return

        acquire = asyncio.ensure_future(self._acquire_when_ready())
        waiters: set[asyncio.Future[object]] = {acquire}
        cancelled = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        if cancelled is not None:
            waiters.add(cancelled)
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
            for waiter in waiters:
                with contextlib.suppress(asyncio.CancelledError):
                    await waiter

        if acquire in done:
            acquire.result()
            self._granted()
            return
        reason = "cancelled" if cancelled is not None and cancelled in done else f"timed out after {timeout}s"
        raise RateLimitExceeded(f"rate limit wait {reason}")


@dataclass
class Reservation:
    """Handle on a future token. Nothing is consumed until ``wait`` is awaited."""

    bucket: TokenBucket
    delay: float
    cancelled: bool = field(default=False, init=False)

    def cancel(self) -> None:
        self.cancelled = True

    async def wait(self, cancel: asyncio.Event | None = None, timeout: float | None = None) -> None:
        if self.cancelled:
            raise RateLimitExceeded("reservation was cancelled")
        await self.bucket.wait(cancel, timeout)


def host_of(url: str) -> str:
    """Network location of ``url``, or the raw string when it has none."""

    try:
        host = urlsplit(url).netloc
    except ValueError:
        return url
    return host or url


class RateLimiter:
    """Global LLM budget plus lazily created per-host HTTP budgets.

    Construct one per process or session and pass it to every caller.
    """

    def __init__(
        self,
        llm_interval: float = DEFAULT_LLM_INTERVAL,
        http_interval: float = DEFAULT_HTTP_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._llm_interval = llm_interval
        self._http_interval = http_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._domains: dict[str, TokenBucket] = {}
        self._llm = TokenBucket(llm_interval, clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings) -> RateLimiter:
        return cls(settings.llm_interval_seconds, settings.http_interval_seconds)

    @property
    def llm_interval(self) -> float:
        return self._llm_interval

    @property
    def http_interval(self) -> float:
        return self._http_interval

    def _domain_bucket(self, domain: str) -> TokenBucket:
        with self._lock:
            bucket = self._domains.get(domain)
            if bucket is None:
                bucket = TokenBucket(self._http_interval, clock=self._clock)
                self._domains[domain] = bucket
                logger.debug("Created rate limit bucket for {}", domain)
            return bucket

    def domain_count(self) -> int:
        with self._lock:
            return len(self._domains)

    async def allow_llm(self) -> bool:
        return await self._llm.allow()

    async def allow_http(self, domain: str) -> bool:
        return await self._domain_bucket(domain).allow()

    def reserve_llm(self) -> Reservation:
        return self._llm.reserve()

    def reserve_http(self, domain: str) -> Reservation:
        return self._domain_bucket(domain).reserve()

    async def wait_llm(self, cancel: asyncio.Event | None = None, timeout: float | None = None) -> None:
        await self._llm.wait(cancel, timeout)

    async def wait_http(self, domain: str, cancel: asyncio.Event | None = None, timeout: float | None = None) -> None:
        await self._domain_bucket(domain).wait(cancel, timeout)

    async def wait_http_for_url(
        self, url: str, cancel: asyncio.Event | None = None, timeout: float | None = None
    ) -> None:
        await self.wait_http(host_of(url), cancel, timeout)

    def reset(self) -> None:
        """Drop every host bucket and refill the LLM bucket."""

        with self._lock:
            self._domains.clear()
            self._llm = TokenBucket(self._llm_interval, clock=self._clock)

"""HTTP fetch collaborator.

Hands the core raw bytes plus a content type. Every request waits on the
per-host rate limit bucket first and is retried on transport errors and
retryable status codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ebuild_autoupdate import __version__

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ebuild_autoupdate.clients.ratelimit import RateLimiter
    from ebuild_autoupdate.settings import Settings

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RetryableStatusError(Exception):
    """Raised when a response has a retryable HTTP status code, so tenacity can retry."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Retryable HTTP {status_code}")


@dataclass(frozen=True, slots=True)
class FetchedContent:
    """Body and media type of one successful response."""

    url: str
    body: bytes
    content_type: str
    status_code: int = 200

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type


def _log_before_sleep(retry_state: RetryCallState) -> None:
    """Loguru-compatible before_sleep callback for tenacity."""
    if retry_state.next_action:
        sleep = retry_state.next_action.sleep
        logger.warning(
            "Retrying {} (attempt {}), sleeping {:.1f}s",
            retry_state.fn.__name__ if retry_state.fn else "unknown",
            retry_state.attempt_number,
            sleep,
        )


async def create_http_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Create shared async client with predictable defaults."""

    return httpx.AsyncClient(
        transport=transport,
        http2=True,
        timeout=httpx.Timeout(
            connect=5.0,
            read=settings.request_timeout,
            write=10.0,
            pool=10.0,
        ),
        headers={
            "User-Agent": f"ebuild-autoupdate/{__version__}",
            "Accept": "application/json,text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        },
        follow_redirects=True,
    )


@retry(
    retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException, RetryableStatusError)),
    wait=wait_exponential(multiplier=1, min=1, max=30) + wait_random(0, 2),
    stop=stop_after_attempt(5),
    before_sleep=_log_before_sleep,
    reraise=True,
)
async def fetch_with_retry(
    client: httpx.AsyncClient,
    limiter: RateLimiter,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    """Rate-limited resilient GET."""

    await limiter.wait_http_for_url(url)
    response = await client.get(url, headers=dict(headers) if headers else None)
    if response.status_code in RETRYABLE_STATUS_CODES:
        status = response.status_code
        await response.aclose()
        raise RetryableStatusError(status)
    return response


async def fetch_content(
    client: httpx.AsyncClient,
    limiter: RateLimiter,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
) -> FetchedContent:
    """Fetch ``url`` and fail fast on non-2xx responses."""

    response = await fetch_with_retry(client, limiter, url, headers=headers)
    response.raise_for_status()
    content_type = response.headers.get("content-type", "").split(";", 1)[0].strip() or "text/html"
    logger.debug("Fetched {} ({} bytes, {})", url, len(response.content), content_type)
    return FetchedContent(url=url, body=response.content, content_type=content_type, status_code=response.status_code)

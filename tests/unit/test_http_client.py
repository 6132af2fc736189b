"""Tests for HTTP client module."""

from __future__ import annotations

import httpx
import pytest

from ebuild_autoupdate.clients.http import (
    RetryableStatusError,
    create_http_client,
    fetch_content,
    fetch_with_retry,
)
from ebuild_autoupdate.clients.ratelimit import RateLimiter
from ebuild_autoupdate.settings import Settings


@pytest.mark.asyncio
async def test_create_http_client(settings: Settings) -> None:
    client = await create_http_client(settings)
    assert isinstance(client, httpx.AsyncClient)
    assert client.headers["User-Agent"].startswith("ebuild-autoupdate/")
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_content(settings: Settings, fast_limiter: RateLimiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Accept"] == "application/vnd.github+json"
        return httpx.Response(
            200,
            json=[{"tag_name": "v1.0"}],
            headers={"content-type": "application/json; charset=utf-8"},
        )

    async with await create_http_client(settings, transport=httpx.MockTransport(handler)) as client:
        fetched = await fetch_content(
            client,
            fast_limiter,
            "https://api.github.com/repos/o/r/releases",
            headers={"Accept": "application/vnd.github+json"},
        )

    assert fetched.is_json
    assert fetched.content_type == "application/json"
    assert b"tag_name" in fetched.body
    assert fast_limiter.domain_count() == 1


@pytest.mark.asyncio
@pytest.mark.usefixtures("no_retry_wait")
async def test_fetch_with_retry_recovers(settings: Settings, fast_limiter: RateLimiter) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(503)
        return httpx.Response(200, text="<html>ok</html>")

    async with await create_http_client(settings, transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, fast_limiter, "https://example.com/download")

    assert response.status_code == 200
    assert calls == 3


@pytest.mark.asyncio
@pytest.mark.usefixtures("no_retry_wait")
async def test_fetch_with_retry_gives_up(settings: Settings, fast_limiter: RateLimiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    async with await create_http_client(settings, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(RetryableStatusError) as exc_info:
            await fetch_with_retry(client, fast_limiter, "https://example.com/test")

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_fetch_content_raises_on_not_found(settings: Settings, fast_limiter: RateLimiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with await create_http_client(settings, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_content(client, fast_limiter, "https://example.com/missing")

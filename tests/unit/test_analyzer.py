"""Tests for the analysis pipeline."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest

from ebuild_autoupdate.clients.ratelimit import RateLimiter
from ebuild_autoupdate.config import parse_packages_config
from ebuild_autoupdate.errors import NoValidSchema, PackageNotFound
from ebuild_autoupdate.models.analysis import SchemaAnalysis
from ebuild_autoupdate.pipeline import Analyzer
from ebuild_autoupdate.storage import AnalysisCache
from tests.factories import FakeLLM, write_ebuild

RELEASES_URL = "https://api.github.com/repos/owner/tool/releases"
PYPI_URL = "https://pypi.org/pypi/requests/json"


class Routes:
    """MockTransport handler serving canned bodies by URL."""

    def __init__(self, routes: dict[str, httpx.Response]) -> None:
        self.routes = routes
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        return self.routes.get(url, httpx.Response(404))


def _analyzer(overlay: Path, routes: Routes, limiter: RateLimiter, **kwargs) -> Analyzer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(routes))
    kwargs.setdefault("cache", AnalysisCache())
    return Analyzer(overlay, client, limiter, **kwargs)


@pytest.mark.asyncio
async def test_configured_schema_validates(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-python/requests", "2.31.0", homepage="https://pypi.org/project/requests")
    packages = parse_packages_config(
        f'["dev-python/requests"]\nurl = "{PYPI_URL}"\nparser = "json"\npath = "info.version"\n'
    )
    routes = Routes({PYPI_URL: httpx.Response(200, json={"info": {"version": "2.31.0"}})})
    cache = AnalysisCache()

    result = await _analyzer(overlay, routes, fast_limiter, cache=cache, packages=packages).analyze(
        "dev-python/requests"
    )

    assert result.version == "2.31.0"
    assert result.source.type == "provided"
    assert result.extraction_schema.parser == "json"
    assert result.extraction_schema.fallback_parser == "html"
    assert result.validation.valid is True
    assert result.from_cache is False
    assert cache.get("dev-python/requests") is not None


@pytest.mark.asyncio
async def test_llm_suggested_schema(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "v1.2.3"}, {"tag_name": "v1.2.2"}])})
    llm = FakeLLM(analysis=SchemaAnalysis(parser_type="json", path="[0].tag_name", confidence=0.9))

    result = await _analyzer(overlay, routes, fast_limiter, llm=llm).analyze("dev-util/tool", hint="use tags")

    assert result.version == "v1.2.3"
    assert result.source.url == RELEASES_URL
    assert len(llm.analyze_calls) == 1
    _, meta, hint = llm.analyze_calls[0]
    assert meta.package == "dev-util/tool"
    assert hint == "use tags"


@pytest.mark.asyncio
async def test_cached_schema_is_revalidated(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "1.2.3"}])})
    llm = FakeLLM(analysis=SchemaAnalysis(parser_type="json", path="[0].tag_name"))
    analyzer = _analyzer(overlay, routes, fast_limiter, llm=llm)

    await analyzer.analyze("dev-util/tool")
    cached = await analyzer.analyze("dev-util/tool")

    assert cached.from_cache is True
    assert cached.version == "1.2.3"
    assert len(llm.analyze_calls) == 1

    forced = await analyzer.analyze("dev-util/tool", force=True)
    assert forced.from_cache is False
    assert len(llm.analyze_calls) == 2


@pytest.mark.asyncio
async def test_stale_cache_entry_is_ignored(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "1.2.3"}])})
    llm = FakeLLM(analysis=SchemaAnalysis(parser_type="json", path="[0].tag_name"))
    clock = [datetime(2024, 1, 1, tzinfo=UTC)]
    cache = AnalysisCache(now=lambda: clock[0])
    analyzer = _analyzer(overlay, routes, fast_limiter, llm=llm, cache=cache)

    await analyzer.analyze("dev-util/tool")
    clock[0] += timedelta(hours=24)
    result = await analyzer.analyze("dev-util/tool")

    assert result.from_cache is False
    assert len(llm.analyze_calls) == 2


@pytest.mark.asyncio
async def test_unreachable_source_is_skipped(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "1.2.3"}])})
    llm = FakeLLM(analysis=SchemaAnalysis(parser_type="json", path="[0].tag_name"))

    result = await _analyzer(overlay, routes, fast_limiter, llm=llm).analyze(
        "dev-util/tool", provided_url="https://tool.example.com/missing.json"
    )

    assert result.source.type == "github"
    assert [attempt.source.type for attempt in result.attempts] == ["provided", "github"]
    assert "404" in result.attempts[0].error


@pytest.mark.asyncio
async def test_no_valid_schema(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "2.0.0"}])})
    llm = FakeLLM(analysis=SchemaAnalysis(parser_type="json", path="[0].tag_name"))
    cache = AnalysisCache()

    with pytest.raises(NoValidSchema):
        await _analyzer(overlay, routes, fast_limiter, llm=llm, cache=cache).analyze("dev-util/tool")

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_no_llm_and_no_config(overlay: Path, fast_limiter: RateLimiter) -> None:
    write_ebuild(overlay, "dev-util/tool", "1.2.3", homepage="https://github.com/owner/tool")
    routes = Routes({RELEASES_URL: httpx.Response(200, json=[{"tag_name": "1.2.3"}])})

    with pytest.raises(NoValidSchema):
        await _analyzer(overlay, routes, fast_limiter).analyze("dev-util/tool")


@pytest.mark.asyncio
async def test_unknown_package(overlay: Path, fast_limiter: RateLimiter) -> None:
    with pytest.raises(PackageNotFound):
        await _analyzer(overlay, Routes({}), fast_limiter).analyze("app-misc/missing")

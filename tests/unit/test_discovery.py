"""Tests for data source discovery."""

from __future__ import annotations

from ebuild_autoupdate.discovery import discover_data_sources
from ebuild_autoupdate.discovery.sources import detect_content_type, is_url_covered
from ebuild_autoupdate.models.source import DataSource
from tests.factories import make_metadata


def test_pypi_homepage_yields_single_registry_source() -> None:
    meta = make_metadata(package="dev-python/requests", homepage="https://pypi.org/project/requests")

    sources = discover_data_sources(meta)

    assert len(sources) == 1
    assert sources[0].type == "pypi"
    assert sources[0].url == "https://pypi.org/pypi/requests/json"
    assert sources[0].content_type == "application/json"


def test_provided_url_comes_first() -> None:
    meta = make_metadata(homepage="https://github.com/owner/tool")

    sources = discover_data_sources(meta, provided_url="https://tool.example.com/latest.json")

    assert [source.type for source in sources] == ["provided", "github"]
    assert sources[0].content_type == "application/json"
    assert sources[1].url == "https://api.github.com/repos/owner/tool/releases"


def test_github_from_src_uri_and_homepage_kept() -> None:
    meta = make_metadata(
        homepage="https://tool.example.com/",
        src_uri="https://github.com/owner/tool/archive/v1.0.tar.gz",
    )

    sources = discover_data_sources(meta)

    assert [(source.type, source.priority) for source in sources] == [("github", 10), ("homepage", 100)]
    assert sources[1].content_type == "text/html"


def test_registry_name_from_dependencies() -> None:
    meta = make_metadata(package="dev-python/attrs", dependencies=["dev-python/setuptools"])

    sources = discover_data_sources(meta)

    assert [source.url for source in sources] == ["https://pypi.org/pypi/attrs/json"]


def test_npm_and_crates_registries() -> None:
    npm = discover_data_sources(make_metadata(homepage="https://www.npmjs.com/package/left-pad"))
    crates = discover_data_sources(make_metadata(homepage="https://crates.io/crates/serde"))

    assert [source.url for source in npm] == ["https://registry.npmjs.org/left-pad"]
    assert [source.url for source in crates] == ["https://crates.io/api/v1/crates/serde"]


def test_non_http_homepage_is_ignored() -> None:
    assert discover_data_sources(make_metadata(homepage="ftp://example.com/pub")) == []


def test_sources_are_sorted_by_priority() -> None:
    meta = make_metadata(
        package="dev-python/tool",
        homepage="https://tool.example.com",
        src_uri="https://github.com/owner/tool/archive/1.0.tar.gz",
        dependencies=["dev-python/setuptools"],
    )

    priorities = [source.priority for source in discover_data_sources(meta, provided_url="https://x.example.com")]

    assert priorities == sorted(priorities)
    assert priorities[0] == 0


def test_detect_content_type() -> None:
    assert detect_content_type("https://api.github.com/repos/o/r/releases") == "application/json"
    assert detect_content_type("https://example.com/data.json") == "application/json"
    assert detect_content_type("https://example.com/download") == "text/html"


def test_is_url_covered() -> None:
    github = DataSource(url="https://api.github.com/repos/o/r/releases", type="github", priority=10)
    assert is_url_covered("https://github.com/o/r", [github]) is True
    assert is_url_covered("https://example.com", [github]) is False

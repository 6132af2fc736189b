"""Data source discovery.

Turns ebuild metadata into a priority-ordered list of endpoints that may
expose the upstream version: an explicit override first, then the GitHub
releases API, then language registries, then the homepage itself.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from ebuild_autoupdate.models.source import (
    PRIORITY_GITHUB,
    PRIORITY_HOMEPAGE,
    PRIORITY_PROVIDED,
    PRIORITY_REGISTRY,
    ContentType,
    DataSource,
    SourceType,
)

if TYPE_CHECKING:
    from ebuild_autoupdate.models.ebuild import EbuildMetadata

JSON_CONTENT: ContentType = "application/json"
HTML_CONTENT: ContentType = "text/html"

_JSON_URL_MARKERS = ("api.github.com", "pypi.org/pypi/", "registry.npmjs.org", "crates.io/api/", ".json")

_GITHUB_URL_RE = re.compile(r"""github\.com[/:]([^/]+)/([^/\s"'#?]+)""")
_PYPI_URL_RE = re.compile(r"""pypi\.(?:org|io|python\.org)/project/([^/\s"'#?]+)""")
_PYPI_FILES_RE = re.compile(r"files\.pythonhosted\.org/packages/.*?/([^/]+)-\d")
_NPM_URL_RE = re.compile(r"""(?:npmjs\.(?:org|com)|registry\.npmjs\.org)/(?:package/)?([^/\s"'#?]+)""")
_CRATES_URL_RE = re.compile(r"""crates\.io/crates/([^/\s"'#?]+)""")


@dataclass(frozen=True, slots=True)
class Registry:
    """How to recognize one language registry and where its version API lives."""

    type: SourceType
    url_patterns: tuple[re.Pattern[str], ...]
    src_uri_patterns: tuple[re.Pattern[str], ...]
    dependency_pattern: re.Pattern[str]
    category: str
    api_url: str

    def name_from(self, meta: EbuildMetadata) -> str | None:
        for pattern in self.url_patterns:
            for text in (meta.homepage, meta.src_uri):
                if match := pattern.search(text):
                    return match.group(1)
        for pattern in self.src_uri_patterns:
            if match := pattern.search(meta.src_uri):
                return match.group(1)
        if meta.category == self.category and any(self.dependency_pattern.search(d) for d in meta.dependencies):
            return meta.name
        return None

    def covers(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self.url_patterns)


REGISTRIES: tuple[Registry, ...] = (
    Registry(
        type="pypi",
        url_patterns=(_PYPI_URL_RE,),
        src_uri_patterns=(_PYPI_FILES_RE,),
        dependency_pattern=re.compile(r"dev-python/|python-"),
        category="dev-python",
        api_url="https://pypi.org/pypi/{name}/json",
    ),
    Registry(
        type="npm",
        url_patterns=(_NPM_URL_RE,),
        src_uri_patterns=(),
        dependency_pattern=re.compile(r"net-libs/nodejs|dev-nodejs/"),
        category="dev-nodejs",
        api_url="https://registry.npmjs.org/{name}",
    ),
    Registry(
        type="crates",
        url_patterns=(_CRATES_URL_RE,),
        src_uri_patterns=(),
        dependency_pattern=re.compile(r"dev-lang/rust|virtual/rust"),
        category="dev-rust",
        api_url="https://crates.io/api/v1/crates/{name}",
    ),
)
_REGISTRY_BY_TYPE = {registry.type: registry for registry in REGISTRIES}


def detect_content_type(url: str) -> ContentType:
    """JSON for well-known API hosts and ``.json`` URLs, markup otherwise."""

    return JSON_CONTENT if any(marker in url for marker in _JSON_URL_MARKERS) else HTML_CONTENT


def is_http_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def discover_github_source(meta: EbuildMetadata) -> DataSource | None:
    for text in (meta.homepage, meta.src_uri):
        if match := _GITHUB_URL_RE.search(text):
            owner, repo = match.group(1), match.group(2).removesuffix(".git")
            return DataSource(
                url=f"https://api.github.com/repos/{owner}/{repo}/releases",
                type="github",
                priority=PRIORITY_GITHUB,
                content_type=JSON_CONTENT,
            )
    return None


def discover_registry_source(meta: EbuildMetadata, registry: Registry) -> DataSource | None:
    name = registry.name_from(meta)
    if not name:
        return None
    return DataSource(
        url=registry.api_url.format(name=name),
        type=registry.type,
        priority=PRIORITY_REGISTRY,
        content_type=JSON_CONTENT,
    )


def is_url_covered(url: str, sources: list[DataSource]) -> bool:
    """True when an already discovered GitHub or registry source recognizes ``url``."""

    for source in sources:
        if source.type == "github" and _GITHUB_URL_RE.search(url):
            return True
        registry = _REGISTRY_BY_TYPE.get(source.type)
        if registry is not None and registry.covers(url):
            return True
    return False


def discover_data_sources(meta: EbuildMetadata, provided_url: str | None = None) -> list[DataSource]:
    """Candidate version endpoints for ``meta``, sorted ascending by priority.

    Ties keep discovery order.
    """
    sources: list[DataSource] = []
    if provided_url:
        sources.append(
            DataSource(
                url=provided_url,
                type="provided",
                priority=PRIORITY_PROVIDED,
                content_type=detect_content_type(provided_url),
            )
        )

    if github := discover_github_source(meta):
        sources.append(github)
    for registry in REGISTRIES:
        if source := discover_registry_source(meta, registry):
            sources.append(source)

    if meta.homepage and is_http_url(meta.homepage) and not is_url_covered(meta.homepage, sources):
        sources.append(
            DataSource(url=meta.homepage, type="homepage", priority=PRIORITY_HOMEPAGE, content_type=HTML_CONTENT)
        )

    sources.sort(key=lambda source: source.priority)
    logger.debug("Discovered {} data sources for {}", len(sources), meta.package)
    return sources

"""Bounded version history extraction."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from ebuild_autoupdate.errors import ExtractionFailed
from ebuild_autoupdate.models.schema import ExtractionSchema, HtmlStrategy, RegexStrategy

from .json_path import MAX_VERSION_HISTORY, PathSyntaxError, collect_versions
from .markup import MARKUP_ERRORS, select_texts

if TYPE_CHECKING:
    from .engine import Content


def _refining_pattern(schema: ExtractionSchema) -> str | None:
    primary = schema.primary
    if isinstance(primary, RegexStrategy | HtmlStrategy):
        return primary.pattern or None
    return None


def json_history(content: Content, path: str, limit: int = MAX_VERSION_HISTORY) -> list[str]:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ExtractionFailed(f"invalid JSON: {exc}") from exc
    try:
        return collect_versions(data, path, limit)
    except PathSyntaxError as exc:
        raise ExtractionFailed(f"invalid path {path!r}: {exc}") from exc


def markup_history(
    content: Content,
    *,
    selector: str | None = None,
    xpath: str | None = None,
    pattern: str | None = None,
    limit: int = MAX_VERSION_HISTORY,
) -> list[str]:
    locator = selector or xpath
    try:
        versions = select_texts(content, selector=selector, xpath=xpath, pattern=pattern, limit=limit)
    except MARKUP_ERRORS as exc:
        raise ExtractionFailed(f"history extraction with {locator!r} failed: {exc}") from exc
    if not versions:
        raise ExtractionFailed(f"no versions found with {locator!r}")
    return versions


def extract_version_history(content: Content, schema: ExtractionSchema) -> list[str]:
    """Up to ten versions in source order, or [] when the schema has no history locator.

    ``versions_path`` wins over ``versions_selector``; an html schema with an
    XPath primary locator falls back to collecting every node it matches.
    """
    if schema.versions_path:
        return json_history(content, schema.versions_path)
    if schema.versions_selector:
        return markup_history(content, selector=schema.versions_selector, pattern=_refining_pattern(schema))
    primary = schema.primary
    if isinstance(primary, HtmlStrategy) and primary.xpath:
        return markup_history(content, xpath=primary.xpath, pattern=primary.pattern)
    return []

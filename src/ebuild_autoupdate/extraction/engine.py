"""Version extraction strategies.

Each strategy of the ``Strategy`` union has one extractor here. Every failure
surfaces as ``ExtractionFailed`` chained to the underlying parse, match or
selector error.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

from loguru import logger

from ebuild_autoupdate.errors import ExtractionFailed, LLMError, LLMNotConfigured
from ebuild_autoupdate.models.schema import (
    AnyStrategy,
    ExtractionSchema,
    HtmlStrategy,
    JsonStrategy,
    LlmStrategy,
    RegexStrategy,
)
from ebuild_autoupdate.utils.versions import clean_version_string

from .history import extract_version_history
from .json_path import PathSyntaxError, first_version
from .markup import MARKUP_ERRORS, select_texts

if TYPE_CHECKING:
    from ebuild_autoupdate.clients.llm import LLMProvider
    from ebuild_autoupdate.clients.ratelimit import RateLimiter

Content = str | bytes


def as_text(content: Content) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def extract_json(content: Content, strategy: JsonStrategy) -> str:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ExtractionFailed(f"invalid JSON: {exc}") from exc
    try:
        return first_version(data, strategy.path).strip()
    except PathSyntaxError as exc:
        raise ExtractionFailed(f"invalid path {strategy.path!r}: {exc}") from exc


def extract_regex(content: Content, strategy: RegexStrategy) -> str:
    try:
        pattern = re.compile(strategy.pattern)
    except re.error as exc:
        raise ExtractionFailed(f"invalid pattern {strategy.pattern!r}: {exc}") from exc
    match = pattern.search(as_text(content))
    if match is None:
        raise ExtractionFailed(f"pattern {strategy.pattern!r} did not match")
    value = match.group(1) if pattern.groups else match.group(0)
    if not value or not value.strip():
        raise ExtractionFailed(f"pattern {strategy.pattern!r} captured nothing")
    return value.strip()


def extract_html(content: Content, strategy: HtmlStrategy) -> str:
    locator = strategy.selector or strategy.xpath
    try:
        texts = select_texts(
            content,
            selector=strategy.selector,
            xpath=None if strategy.selector else strategy.xpath,
            pattern=strategy.pattern,
            limit=1,
        )
    except MARKUP_ERRORS as exc:
        raise ExtractionFailed(f"html extraction with {locator!r} failed: {exc}") from exc
    if not texts:
        raise ExtractionFailed(f"no element matched {locator!r}")
    return texts[0]


async def extract_llm(
    content: Content,
    strategy: LlmStrategy,
    llm: LLMProvider | None,
    limiter: RateLimiter | None = None,
) -> str:
    if llm is None:
        raise ExtractionFailed("llm extraction needs a configured provider") from LLMNotConfigured()
    if limiter is not None:
        await limiter.wait_llm()
    try:
        answer = await llm.extract_version(as_text(content), strategy.prompt or "")
    except LLMError as exc:
        raise ExtractionFailed(f"llm extraction failed: {exc}") from exc
    version = clean_version_string(answer)
    if not version:
        raise ExtractionFailed("llm returned an empty version")
    return version


async def extract_version(
    content: Content,
    strategy: AnyStrategy,
    *,
    llm: LLMProvider | None = None,
    limiter: RateLimiter | None = None,
) -> str:
    """Raw version string produced by ``strategy`` from ``content``."""

    match strategy:
        case JsonStrategy():
            return extract_json(content, strategy)
        case RegexStrategy():
            return extract_regex(content, strategy)
        case HtmlStrategy():
            return extract_html(content, strategy)
        case LlmStrategy():
            return await extract_llm(content, strategy, llm, limiter)
    raise ExtractionFailed(f"unsupported strategy {strategy!r}")


async def parse_version(
    content: Content,
    schema: ExtractionSchema,
    *,
    llm: LLMProvider | None = None,
    limiter: RateLimiter | None = None,
) -> str:
    """Extract with the primary strategy, then the schema's fallback strategy on the same content."""

    try:
        return await extract_version(content, schema.primary, llm=llm, limiter=limiter)
    except ExtractionFailed as primary_error:
        if schema.fallback is None:
            raise
        logger.debug("Primary {} extraction failed ({}), trying {}", schema.parser, primary_error, schema.fallback.kind)
        try:
            return await extract_version(content, schema.fallback, llm=llm, limiter=limiter)
        except ExtractionFailed as fallback_error:
            raise ExtractionFailed(
                f"{primary_error}; fallback {schema.fallback.kind}: {fallback_error}"
            ) from primary_error


class ExtractionEngine:
    """Extraction bound to one LLM provider and rate limiter."""

    def __init__(self, llm: LLMProvider | None = None, limiter: RateLimiter | None = None) -> None:
        self.llm = llm
        self.limiter = limiter

    async def extract(self, content: Content, strategy: AnyStrategy) -> str:
        return await extract_version(content, strategy, llm=self.llm, limiter=self.limiter)

    async def parse_version(self, content: Content, schema: ExtractionSchema) -> str:
        return await parse_version(content, schema, llm=self.llm, limiter=self.limiter)

    def version_history(self, content: Content, schema: ExtractionSchema) -> list[str]:
        return extract_version_history(content, schema)

"""Reliability-ordered fallback strategies.

Structured JSON is the most reliable way to read a version, followed by
markup selection, free-text patterns, and finally LLM extraction. Fallback
suggestions and chains are ranked with that order.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

from ebuild_autoupdate.errors import InvalidFallback
from ebuild_autoupdate.models.schema import (
    KNOWN_PARSERS,
    AnyStrategy,
    ExtractionSchema,
    HtmlStrategy,
    JsonStrategy,
    LlmStrategy,
    RegexStrategy,
)
from ebuild_autoupdate.models.validation import FallbackSuggestion

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_FALLBACK_PATTERN = r"(\d+\.\d+(?:\.\d+)?(?:[-._]\w+)?)"
DEFAULT_LLM_PROMPT = "Extract the version number from the content"
DEFAULT_JSON_PATH = "version"
DEFAULT_HTML_SELECTOR = "body"


class ParserReliability(IntEnum):
    JSON = 1
    HTML = 2
    REGEX = 3
    LLM = 4
    UNKNOWN = 5


_RELIABILITY = {
    "json": ParserReliability.JSON,
    "html": ParserReliability.HTML,
    "regex": ParserReliability.REGEX,
    "llm": ParserReliability.LLM,
}

_REASONS = {
    "json": "JSON provides structured, reliable version data",
    "html": "HTML parsing with CSS selectors or XPath is semi-structured",
    "regex": "Regex pattern matching works on any text content",
    "llm": "LLM extraction handles complex or unstructured content",
}


def parser_reliability(parser_type: str) -> ParserReliability:
    return _RELIABILITY.get(parser_type, ParserReliability.UNKNOWN)


def suggest_fallbacks(primary: str) -> list[FallbackSuggestion]:
    """Every known strategy except ``primary``, most reliable first."""

    suggestions = [
        FallbackSuggestion(parser_type=parser, reliability=int(parser_reliability(parser)), reason=_REASONS[parser])
        for parser in KNOWN_PARSERS
        if parser != primary
    ]
    return order_fallbacks_by_reliability(suggestions)


def get_best_fallback(primary: str) -> FallbackSuggestion | None:
    suggestions = suggest_fallbacks(primary)
    return suggestions[0] if suggestions else None


def order_fallbacks_by_reliability(fallbacks: Iterable[FallbackSuggestion]) -> list[FallbackSuggestion]:
    """Stable sort by reliability rank; equal ranks keep their input order."""

    return sorted(fallbacks, key=lambda suggestion: suggestion.reliability)


def is_fallback_order_valid(fallbacks: list[FallbackSuggestion]) -> bool:
    return all(left.reliability <= right.reliability for left, right in zip(fallbacks, fallbacks[1:], strict=False))


def _fallback_strategy(schema: ExtractionSchema, parser_type: str) -> AnyStrategy:
    current = schema.fallback
    if current is None or current.kind != parser_type or _strategy_locator_missing(current):
        return _default_strategy(schema, parser_type)
    if isinstance(current, LlmStrategy) and not current.prompt:
        return _default_strategy(schema, parser_type)
    return current


def _default_strategy(schema: ExtractionSchema, parser_type: str) -> AnyStrategy:
    match parser_type:
        case "json":
            return JsonStrategy(path=schema.versions_path or DEFAULT_JSON_PATH)
        case "html":
            return HtmlStrategy(
                selector=schema.versions_selector or DEFAULT_HTML_SELECTOR, pattern=DEFAULT_FALLBACK_PATTERN
            )
        case "regex":
            return RegexStrategy(pattern=DEFAULT_FALLBACK_PATTERN)
        case "llm":
            return LlmStrategy(prompt=schema.llm_prompt or DEFAULT_LLM_PROMPT)
    raise InvalidFallback(f"unknown fallback parser type {parser_type!r}")


def apply_fallback_to_schema(schema: ExtractionSchema, suggestion: FallbackSuggestion) -> ExtractionSchema:
    """Copy of ``schema`` using ``suggestion`` as its fallback strategy.

    Json and html fallbacks reuse the schema's version history locators when
    it has them; html falls back to the page body refined by the generic
    numeric version pattern. A regex fallback gets that pattern and an llm
    fallback the default prompt unless the schema already carries one.
    """
    return schema.model_copy(update={"fallback": _fallback_strategy(schema, suggestion.parser_type)})


def enhance_schema_with_fallback(schema: ExtractionSchema) -> ExtractionSchema:
    """Add the most reliable fallback when the schema has none; otherwise return it unchanged."""

    if schema.fallback is not None:
        return schema
    best = get_best_fallback(schema.parser)
    if best is None:
        return schema
    return apply_fallback_to_schema(schema, best)


def _strategy_locator_missing(strategy: AnyStrategy) -> str | None:
    match strategy:
        case JsonStrategy(path=path) if not path:
            return "path"
        case RegexStrategy(pattern=pattern) if not pattern:
            return "pattern"
    return None


def validate_fallback_chain(schema: ExtractionSchema) -> None:
    """Raise ``InvalidFallback`` when the fallback repeats the primary or lacks its locator."""

    fallback = schema.fallback
    if fallback is None:
        return
    if fallback.kind == schema.primary.kind:
        raise InvalidFallback(f"fallback parser {fallback.kind!r} must differ from the primary parser")
    if parser_reliability(fallback.kind) is ParserReliability.UNKNOWN:
        raise InvalidFallback(f"unknown fallback parser type {fallback.kind!r}")
    if missing := _strategy_locator_missing(fallback):
        raise InvalidFallback(f"{fallback.kind} fallback needs a {missing}")

"""Schema validation: extract, normalize, compare."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ebuild_autoupdate.errors import ExtractionFailed, VersionMismatch
from ebuild_autoupdate.extraction.engine import parse_version
from ebuild_autoupdate.models.validation import ValidationResult
from ebuild_autoupdate.utils.versions import normalize_version

if TYPE_CHECKING:
    from ebuild_autoupdate.clients.llm import LLMProvider
    from ebuild_autoupdate.clients.ratelimit import RateLimiter
    from ebuild_autoupdate.extraction.engine import Content
    from ebuild_autoupdate.models.schema import ExtractionSchema


def versions_match(extracted: str, recorded: str) -> bool:
    return normalize_version(extracted) == normalize_version(recorded)


async def validate_schema(
    content: Content,
    schema: ExtractionSchema,
    recorded_version: str,
    *,
    llm: LLMProvider | None = None,
    limiter: RateLimiter | None = None,
) -> ValidationResult:
    """Check that ``schema`` pulls ``recorded_version`` out of ``content``.

    Extraction failures and mismatches come back as an invalid result with
    ``error`` set; they are never raised.
    """
    result = ValidationResult(recorded_version=recorded_version)
    try:
        extracted = await parse_version(content, schema, llm=llm, limiter=limiter)
    except ExtractionFailed as exc:
        result.error = exc
        return result

    result.extracted_version = extracted
    result.versions_match = versions_match(extracted, recorded_version)
    if not result.versions_match:
        result.error = VersionMismatch(extracted, recorded_version)
        return result
    result.valid = True
    return result


async def validate_schema_with_fallback(
    primary_content: Content,
    fallback_content: Content | None,
    schema: ExtractionSchema,
    recorded_version: str,
    *,
    llm: LLMProvider | None = None,
    limiter: RateLimiter | None = None,
) -> ValidationResult:
    """Validate against the primary content, then the fallback endpoint's content.

    The fallback attempt runs only when the primary one is invalid, fallback
    content is available, and the schema defines a fallback strategy. The
    primary result is returned when both attempts fail.
    """
    primary = await validate_schema(primary_content, schema, recorded_version, llm=llm, limiter=limiter)
    if primary.valid or fallback_content is None:
        return primary
    fallback_schema = schema.fallback_schema()
    if fallback_schema is None:
        return primary

    logger.debug("Primary validation failed ({}), trying fallback {}", primary.error, fallback_schema.parser)
    fallback = await validate_schema(fallback_content, fallback_schema, recorded_version, llm=llm, limiter=limiter)
    return fallback if fallback.valid else primary

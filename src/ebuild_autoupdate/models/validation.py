"""Outcomes of schema validation and fallback suggestions."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ValidationResult:
    """Outcome of testing one schema against fetched content.

    ``valid`` holds only when extraction succeeded and the normalized versions
    are equal. Failures are carried in ``error`` rather than raised.
    """

    recorded_version: str
    extracted_version: str = ""
    versions_match: bool = False
    valid: bool = False
    error: Exception | None = None


@dataclass(frozen=True, slots=True)
class FallbackSuggestion:
    """A candidate fallback strategy with its reliability rank (lower is better)."""

    parser_type: str
    reliability: int
    reason: str

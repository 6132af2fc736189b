"""Version extraction from fetched content."""

from .engine import ExtractionEngine, extract_version, parse_version
from .fallback import (
    enhance_schema_with_fallback,
    get_best_fallback,
    suggest_fallbacks,
    validate_fallback_chain,
)
from .history import extract_version_history

__all__ = [
    "ExtractionEngine",
    "enhance_schema_with_fallback",
    "extract_version",
    "extract_version_history",
    "get_best_fallback",
    "parse_version",
    "suggest_fallbacks",
    "validate_fallback_chain",
]

"""Pydantic models and result types."""

from .analysis import AnalysisResult, SchemaAnalysis, SourceAttempt
from .cache import AnalysisCacheDocument, AnalysisCacheEntry
from .ebuild import EbuildMetadata, PackageType
from .pending import ApplyResult, PendingDocument, PendingStatus, PendingUpdate
from .schema import (
    AnyStrategy,
    ExtractionSchema,
    HtmlStrategy,
    JsonStrategy,
    LlmStrategy,
    PackageConfig,
    ParserType,
    RegexStrategy,
    Strategy,
)
from .source import DataSource, SourceType
from .validation import FallbackSuggestion, ValidationResult

__all__ = [
    "AnalysisCacheDocument",
    "AnalysisCacheEntry",
    "AnalysisResult",
    "AnyStrategy",
    "ApplyResult",
    "DataSource",
    "EbuildMetadata",
    "ExtractionSchema",
    "FallbackSuggestion",
    "HtmlStrategy",
    "JsonStrategy",
    "LlmStrategy",
    "PackageConfig",
    "PackageType",
    "ParserType",
    "PendingDocument",
    "PendingStatus",
    "PendingUpdate",
    "RegexStrategy",
    "SchemaAnalysis",
    "SourceAttempt",
    "SourceType",
    "ValidationResult",
]

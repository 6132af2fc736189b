"""LLM schema suggestions and analyzer results."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from .schema import ExtractionSchema, PackageConfig
from .source import DataSource  # noqa: TC001
from .validation import ValidationResult  # noqa: TC001


class SchemaAnalysis(BaseModel):
    """Extraction schema proposed by an LLM after looking at a page."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    parser_type: str
    path: str = ""
    pattern: str = ""
    selector: str = ""
    xpath: str = ""
    fallback_type: str = ""
    fallback_config: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""

    def to_schema(self, url: str) -> ExtractionSchema:
        """Convert the suggestion into a schema for ``url``.

        ``fallback_config`` is read as the fallback's pattern for regex and
        html fallbacks and as its prompt for llm fallbacks.
        """
        fallback_parser = self.fallback_type or None
        if fallback_parser == self.parser_type:
            fallback_parser = None
        config = PackageConfig(
            url=url,
            parser=self.parser_type,
            path=self.path or None,
            pattern=self.pattern or None,
            selector=self.selector or None,
            xpath=self.xpath or None,
            fallback_parser=fallback_parser,
            fallback_pattern=(self.fallback_config or None) if fallback_parser in {"regex", "html"} else None,
            llm_prompt=(self.fallback_config or None) if fallback_parser == "llm" else None,
        )
        return ExtractionSchema.from_config(config)


@dataclass(slots=True)
class SourceAttempt:
    source: DataSource
    error: str = ""
    validation: ValidationResult | None = None


@dataclass(slots=True)
class AnalysisResult:
    """Outcome of analyzing one package."""

    package: str
    version: str
    extraction_schema: ExtractionSchema
    source: DataSource
    validation: ValidationResult
    from_cache: bool = False
    attempts: list[SourceAttempt] = field(default_factory=list)

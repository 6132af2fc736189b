"""Analysis cache records."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

from .schema import ExtractionSchema  # noqa: TC001


class AnalysisCacheEntry(BaseModel):
    """A validated schema remembered for one package."""

    extraction_schema: ExtractionSchema
    url: str
    timestamp: datetime


class AnalysisCacheDocument(BaseModel):
    """On-disk form of the analysis cache."""

    model_config = ConfigDict(extra="ignore")

    schema_version: str = "1"
    entries: dict[str, AnalysisCacheEntry] = Field(default_factory=dict)

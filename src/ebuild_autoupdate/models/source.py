"""Candidate version-check endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

SourceType = Literal["provided", "github", "pypi", "npm", "crates", "homepage"]
ContentType = Literal["application/json", "text/html"]

PRIORITY_PROVIDED = 0
PRIORITY_GITHUB = 10
PRIORITY_REGISTRY = 20
PRIORITY_HOMEPAGE = 100


class DataSource(BaseModel):
    """One endpoint that may expose the upstream version. Lower priority is tried first."""

    model_config = ConfigDict(frozen=True)

    url: str
    type: SourceType
    priority: int
    content_type: ContentType = "text/html"

"""Pending-update ledger rows and apply outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003
from pathlib import Path  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PendingStatus = Literal["pending", "validated", "failed"]


class PendingUpdate(BaseModel):
    """One proposed version bump."""

    model_config = ConfigDict(str_strip_whitespace=True)

    package: str
    current_version: str
    new_version: str
    status: PendingStatus = "pending"
    detail: str = ""
    updated_at: datetime | None = None


class PendingDocument(BaseModel):
    """On-disk form of the pending list."""

    model_config = ConfigDict(extra="ignore")

    schema_version: str = "1"
    updates: dict[str, PendingUpdate] = Field(default_factory=dict)


@dataclass(slots=True)
class ApplyResult:
    """Outcome of one apply attempt. Returned to the caller, never persisted."""

    package: str
    old_version: str = ""
    new_version: str = ""
    success: bool = False
    error: Exception | None = None
    log_path: Path | None = None
    version_files: list[Path] = field(default_factory=list)

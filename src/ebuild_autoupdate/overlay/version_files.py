"""Version-tagged auxiliary files under a package's ``files/`` directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True, slots=True)
class VersionFile:
    """A file whose name mentions a specific package version."""

    category: str
    package: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name


def find_version_files(overlay_path: Path, category: str, package: str, version: str) -> list[VersionFile]:
    """Files directly under ``files/`` whose name contains ``version``, sorted by name.

    A missing or unreadable ``files/`` directory yields an empty list.
    """
    if not version:
        return []
    files_dir = overlay_path / category / package / "files"
    try:
        entries = sorted(files_dir.iterdir()) if files_dir.is_dir() else []
    except OSError:
        return []
    return [
        VersionFile(category=category, package=package, path=entry)
        for entry in entries
        if entry.is_file() and version in entry.name
    ]

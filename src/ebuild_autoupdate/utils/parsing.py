"""Package id helpers."""

from __future__ import annotations


def split_package(package: str) -> tuple[str, str] | None:
    """Split a package id like 'app-misc/foo' into (category, name).

    Returns None unless the id has exactly two non-empty segments.
    """
    parts = package.strip().split("/")
    if len(parts) != 2:
        return None
    category, name = (part.strip() for part in parts)
    if not category or not name:
        return None
    return category, name


def safe_package_name(package: str) -> str:
    """Filesystem-safe form of a package id."""

    return package.replace("/", "_")

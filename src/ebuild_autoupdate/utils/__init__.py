"""Utility helpers."""

from .parsing import safe_package_name, split_package
from .versions import clean_version_string, compare_versions, normalize_version, strip_version_prefix

__all__ = [
    "clean_version_string",
    "compare_versions",
    "normalize_version",
    "safe_package_name",
    "split_package",
    "strip_version_prefix",
]

"""Overlay parsing helpers."""

from .ebuild_meta import detect_package_type, extract_ebuild_metadata, extract_github_info
from .version_files import VersionFile, find_version_files

__all__ = [
    "VersionFile",
    "detect_package_type",
    "extract_ebuild_metadata",
    "extract_github_info",
    "find_version_files",
]

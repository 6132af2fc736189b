"""Version normalization and ordering."""

from __future__ import annotations

import re

# Longest first so "ver." is not shadowed by "v".
VERSION_PREFIXES = (
    "version-",
    "Version-",
    "release-",
    "Release-",
    "ver-",
    "Ver-",
    "ver.",
    "Ver.",
    "v",
    "V",
)

_GENTOO_VERSION_RE = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+)*)"
    r"(?P<letter>[a-z])?"
    r"(?P<suffixes>(?:_(?:alpha|beta|pre|rc|p)\d*)*)"
    r"(?:-r(?P<revision>\d+))?$"
)
_SUFFIX_RE = re.compile(r"_(alpha|beta|pre|rc|p)(\d*)")
_SUFFIX_RANK = {"alpha": 0, "beta": 1, "pre": 2, "rc": 3, "p": 5}
_NO_SUFFIX = (4, 0)

type VersionKey = tuple[int, tuple[int, ...], int, tuple[tuple[int, int], ...], int, str]


def strip_version_prefix(version: str) -> str:
    for prefix in VERSION_PREFIXES:
        if version.startswith(prefix):
            return version.removeprefix(prefix)
    return version


def normalize_version(version: str) -> str:
    """Trim whitespace and drop one leading release/version marker."""

    return strip_version_prefix(version.strip())


def version_key(version: str) -> VersionKey:
    """Sort key following Gentoo ordering rules.

    Strings that are not Gentoo versions sort before all valid versions,
    lexicographically among themselves.
    """
    match = _GENTOO_VERSION_RE.match(version)
    if match is None:
        return (0, (), 0, (), 0, version)

    numbers = tuple(int(part) for part in match.group("numbers").split("."))
    letter = ord(match.group("letter")) if match.group("letter") else 0
    suffixes = tuple(
        (_SUFFIX_RANK[name], int(number or 0)) for name, number in _SUFFIX_RE.findall(match.group("suffixes"))
    )
    revision = int(match.group("revision") or 0)
    return (1, numbers, letter, (*suffixes, _NO_SUFFIX), revision, "")


def compare_versions(left: str, right: str) -> int:
    """Three-way comparison: negative, zero or positive."""

    left_key, right_key = version_key(left), version_key(right)
    if left_key < right_key:
        return -1
    if left_key > right_key:
        return 1
    return 0


def clean_version_string(text: str) -> str:
    """Tidy a free-text version answer: quotes, trailing punctuation and a leading v."""

    version = text.strip().strip("\"'`").rstrip(".,;:").strip("\"'`")
    version = version.rstrip(".,;:").strip()
    if version[:1] in {"v", "V"}:
        version = version[1:]
    return version

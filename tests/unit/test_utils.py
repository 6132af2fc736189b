"""Tests for version and package id helpers."""

from __future__ import annotations

import pytest

from ebuild_autoupdate.utils import (
    clean_version_string,
    compare_versions,
    normalize_version,
    safe_package_name,
    split_package,
    strip_version_prefix,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("v1.2.3", "1.2.3"),
        ("V2.0", "2.0"),
        ("version-1.0", "1.0"),
        ("release-4.5.6", "4.5.6"),
        ("ver.7", "7"),
        ("ver-8.1", "8.1"),
        ("1.2.3", "1.2.3"),
    ],
)
def test_strip_version_prefix(raw: str, expected: str) -> None:
    assert strip_version_prefix(raw) == expected


def test_strip_version_prefix_only_once() -> None:
    assert strip_version_prefix("vv1.0") == "v1.0"


def test_normalize_version_trims_whitespace() -> None:
    assert normalize_version("  v3.1.4\n") == "3.1.4"


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("1.0", "1.0", 0),
        ("1.10", "1.9", 1),
        ("1.0_rc1", "1.0", -1),
        ("1.0_alpha", "1.0_beta", -1),
        ("1.0_p1", "1.0", 1),
        ("1.0-r1", "1.0", 1),
        ("1.0a", "1.0", 1),
        ("2.0", "10.0", -1),
        ("not-a-version", "0.1", -1),
    ],
)
def test_compare_versions(left: str, right: str, expected: int) -> None:
    assert compare_versions(left, right) == expected


@pytest.mark.parametrize(
    ("answer", "expected"),
    [
        ('"1.2.3"', "1.2.3"),
        ("v11.81.1.", "11.81.1"),
        ("`2.0`", "2.0"),
        ("  V4.0;  ", "4.0"),
        ("", ""),
    ],
)
def test_clean_version_string(answer: str, expected: str) -> None:
    assert clean_version_string(answer) == expected


def test_split_package() -> None:
    assert split_package("app-misc/foo") == ("app-misc", "foo")
    assert split_package("foo") is None
    assert split_package("a/b/c") is None
    assert split_package("/foo") is None


def test_safe_package_name() -> None:
    assert safe_package_name("dev-python/requests") == "dev-python_requests"

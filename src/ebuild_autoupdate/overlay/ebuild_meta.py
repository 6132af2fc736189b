"""Ebuild metadata extraction.

Reads the best ebuild of a package and recovers the facts used to locate
upstream version sources: HOMEPAGE, SRC_URI, dependencies, and the live and
binary flags.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

from ebuild_autoupdate.errors import EbuildNotFound, PackageNotFound, ParseFailed
from ebuild_autoupdate.models.ebuild import EbuildMetadata, PackageType
from ebuild_autoupdate.utils.parsing import split_package
from ebuild_autoupdate.utils.versions import compare_versions

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

LIVE_VERSION = "9999"
EBUILD_SUFFIX = ".ebuild"

_HOMEPAGE_RE = re.compile(r"""^HOMEPAGE=["']([^"']+)["']""", re.MULTILINE)
_GITHUB_RE = re.compile(r"""github\.com[/:]([^/]+)/([^/\s"']+)""")
_PYPI_RE = re.compile(r"pypi\.(?:org|io|python\.org)")
_NPM_RE = re.compile(r"(?:npmjs\.(?:org|com)|registry\.npmjs\.org)")
_CRATES_RE = re.compile(r"crates\.io")
_PYTHON_DEP_RE = re.compile(r"dev-python/|python-")
_NODE_DEP_RE = re.compile(r"net-libs/nodejs|dev-nodejs/")
_RUST_DEP_RE = re.compile(r"dev-lang/rust|virtual/rust")

_BINARY_ARCHIVE_MARKERS = (
    ".deb",
    ".rpm",
    ".AppImage",
    ".tar.gz",
    ".tar.xz",
    ".zip",
    "linux64",
    "linux-x64",
    "linux-amd64",
)
_BIN_NAME_MARKERS = ("PN}-bin", "-bin-")
_DEPENDENCY_OPERATORS = frozenset({"||", "(", ")"})

type VersionComparator = Callable[[str, str], int]


def is_live_version(version: str) -> bool:
    return version.startswith(LIVE_VERSION)


def version_from_filename(stem: str) -> str:
    """Return the version part of an ebuild file stem, or '' if there is none.

    The version starts after the last '-' that is directly followed by a digit.
    """
    for index in range(len(stem) - 1, -1, -1):
        if stem[index] == "-" and index + 1 < len(stem) and stem[index + 1].isdigit():
            return stem[index + 1 :]
    return ""


def select_best_ebuild(
    paths: Iterable[Path],
    compare: VersionComparator = compare_versions,
) -> tuple[Path, str] | None:
    """Pick the highest non-live ebuild; a live ebuild wins only when it is alone."""

    best: tuple[Path, str] | None = None
    for path in paths:
        version = version_from_filename(path.name.removesuffix(EBUILD_SUFFIX))
        if not version:
            continue
        if best is None or _ranks_higher(version, best[1], compare):
            best = (path, version)
    return best


def _ranks_higher(candidate: str, current: str, compare: VersionComparator) -> bool:
    candidate_live, current_live = is_live_version(candidate), is_live_version(current)
    if candidate_live != current_live:
        return current_live
    return compare(candidate, current) > 0


def _find_variable_start(line: str, name: str) -> int:
    """Index just past ``NAME=`` when the name starts the line or follows whitespace."""

    prefix = f"{name}="
    start = 0
    while (index := line.find(prefix, start)) != -1:
        if index == 0 or line[index - 1].isspace():
            return index + len(prefix)
        start = index + 1
    return -1


def extract_multiline_var(content: str, name: str) -> str:
    """Value of a shell-style ``NAME="..."`` assignment, possibly spanning lines.

    Quoted values accumulate until the matching quote; continuation lines are
    stripped and joined with single spaces. Unquoted values end at the line end.
    """
    parts: list[str] = []
    quote = ""
    for line in content.splitlines():
        if not quote:
            value_start = _find_variable_start(line, name)
            if value_start == -1:
                continue
            rest = line[value_start:]
            if not rest:
                continue
            if rest[0] not in "\"'":
                return rest.strip()
            quote, rest = rest[0], rest[1:]
            end = rest.find(quote)
            if end != -1:
                return rest[:end].strip()
            parts.append(rest.strip())
            continue

        end = line.find(quote)
        if end != -1:
            parts.append(line[:end].strip())
            break
        parts.append(line.strip())
    return " ".join(part for part in parts if part)


def extract_package_atom(atom: str) -> str:
    """Reduce a dependency atom such as '>=dev-libs/foo-1.2:0=[ssl]' to 'dev-libs/foo'."""

    atom = atom.lstrip(">=<~!")
    slash = atom.find("/")
    if slash == -1:
        return ""
    for index in range(slash + 1, len(atom)):
        char = atom[index]
        if char in ":[":
            return atom[:index]
        if char == "-" and index + 1 < len(atom) and atom[index + 1].isdigit():
            return atom[:index]
    return atom


def parse_dependency_string(text: str) -> list[str]:
    """Package atoms of a dependency expression, without USE conditionals or grouping."""

    atoms: list[str] = []
    for token in text.split():
        if token.endswith("?") or token in _DEPENDENCY_OPERATORS:
            continue
        if atom := extract_package_atom(token):
            atoms.append(atom)
    return atoms


def extract_dependencies(content: str) -> list[str]:
    """DEPEND atoms followed by RDEPEND atoms, de-duplicated in first-seen order."""

    seen: dict[str, None] = {}
    for variable in ("DEPEND", "RDEPEND"):
        for atom in parse_dependency_string(extract_multiline_var(content, variable)):
            seen.setdefault(atom, None)
    return list(seen)


def detect_binary_package(content: str) -> bool:
    """Best-effort guess whether an ebuild installs prebuilt binaries.

    RESTRICT containing ``bindist`` is taken as proof. Otherwise a binary-looking
    archive in SRC_URI only counts when the ebuild also follows the ``-bin``
    naming convention.
    """
    if "bindist" in extract_multiline_var(content, "RESTRICT"):
        return True
    src_uri = extract_multiline_var(content, "SRC_URI")
    if not any(marker in src_uri for marker in _BINARY_ARCHIVE_MARKERS):
        return False
    return any(marker in content for marker in _BIN_NAME_MARKERS)


def parse_ebuild(content: str, package: str, version: str) -> EbuildMetadata:
    """Build metadata from ebuild text."""

    homepage = _HOMEPAGE_RE.search(content)
    return EbuildMetadata(
        package=package,
        version=version,
        homepage=homepage.group(1) if homepage else "",
        src_uri=extract_multiline_var(content, "SRC_URI"),
        dependencies=extract_dependencies(content),
        is_live=is_live_version(version),
        is_binary=detect_binary_package(content),
    )


def extract_ebuild_metadata(
    overlay_path: Path,
    package: str,
    *,
    compare: VersionComparator = compare_versions,
) -> EbuildMetadata:
    """Parse the best ebuild of ``package`` inside ``overlay_path``.

    Raises:
        PackageNotFound: the id is not ``category/name`` or its directory is missing.
        EbuildNotFound: no ebuild with a parseable version exists.
        ParseFailed: the directory or ebuild could not be read.
    """
    parts = split_package(package)
    if parts is None:
        raise PackageNotFound(f"invalid package format {package!r}, expected category/package")
    category, name = parts
    package_dir = overlay_path / category / name
    if not package_dir.is_dir():
        raise PackageNotFound(f"package directory not found: {package}")

    try:
        candidates = [path for path in package_dir.iterdir() if path.suffix == EBUILD_SUFFIX and path.is_file()]
    except OSError as exc:
        raise ParseFailed(f"cannot read directory {package_dir}: {exc}") from exc

    selected = select_best_ebuild(candidates, compare)
    if selected is None:
        raise EbuildNotFound(f"no ebuilds in {package}")
    ebuild_path, version = selected

    try:
        content = ebuild_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ParseFailed(f"cannot read {ebuild_path}: {exc}") from exc

    logger.debug("Selected {} for {} (version {})", ebuild_path.name, package, version)
    return parse_ebuild(content, package, version)


def _clean_repo_name(repo: str) -> str:
    return repo.removesuffix(".git").removesuffix("/")


def extract_github_info(meta: EbuildMetadata) -> tuple[str, str] | None:
    """GitHub (owner, repo) from HOMEPAGE, then SRC_URI."""

    for text in (meta.homepage, meta.src_uri):
        if match := _GITHUB_RE.search(text):
            return match.group(1), _clean_repo_name(match.group(2))
    return None


def detect_package_type(meta: EbuildMetadata) -> PackageType:
    """Classify the upstream ecosystem from URLs, then from dependency hints."""

    urls = (meta.homepage, meta.src_uri)
    url_checks: tuple[tuple[re.Pattern[str], PackageType], ...] = (
        (_GITHUB_RE, "github"),
        (_PYPI_RE, "pypi"),
        (_NPM_RE, "npm"),
        (_CRATES_RE, "crates"),
    )
    for pattern, package_type in url_checks:
        if any(pattern.search(url) for url in urls):
            return package_type

    for dependency in meta.dependencies:
        if _PYTHON_DEP_RE.search(dependency):
            return "pypi"
        if _NODE_DEP_RE.search(dependency):
            return "npm"
        if _RUST_DEP_RE.search(dependency):
            return "crates"
    return "generic"

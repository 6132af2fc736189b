"""A small path language over parsed JSON documents.

Grammar::

    path     := ["$" ["."]] segment ("." segment | index)*
    segment  := name index* | index+
    index    := "[" ( "*" | integer | quoted-name ) "]"

``releases[0].tag_name``, ``[*].name`` and ``$.info.version`` are all valid.
Evaluation is a recursive generator of leaves, so missing fields and
out-of-range indexes simply produce nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import islice
from typing import TYPE_CHECKING, Any

from ebuild_autoupdate.errors import ExtractionFailed

if TYPE_CHECKING:
    from collections.abc import Iterator

MAX_VERSION_HISTORY = 10

_NAME_RE = re.compile(r"[^.\[\]]+")


class PathSyntaxError(ValueError):
    """The path expression could not be parsed."""


@dataclass(frozen=True, slots=True)
class Field:
    name: str


@dataclass(frozen=True, slots=True)
class Index:
    position: int


@dataclass(frozen=True, slots=True)
class Wildcard:
    pass


type Step = Field | Index | Wildcard


def compile_path(text: str) -> tuple[Step, ...]:
    """Parse ``text`` into evaluation steps. An empty path or ``$`` selects the root."""

    text = text.strip()
    if text.startswith("$"):
        text = text[1:].removeprefix(".")

    steps: list[Step] = []
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char == "[":
            end = text.find("]", pos)
            if end == -1:
                raise PathSyntaxError(f"unclosed '[' in path {text!r}")
            steps.append(_parse_index(text[pos + 1 : end].strip(), text))
            pos = end + 1
        elif char == ".":
            if pos == 0 or pos + 1 == len(text) or text[pos + 1] == ".":
                raise PathSyntaxError(f"empty segment in path {text!r}")
            pos += 1
        elif match := _NAME_RE.match(text, pos):
            steps.append(Field(match.group().strip()))
            pos = match.end()
        else:
            raise PathSyntaxError(f"unexpected {char!r} in path {text!r}")
    return tuple(steps)


def _parse_index(inner: str, text: str) -> Step:
    if inner == "*":
        return Wildcard()
    if inner.lstrip("-").isdigit():
        return Index(int(inner))
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "\"'":
        return Field(inner[1:-1])
    raise PathSyntaxError(f"invalid index [{inner}] in path {text!r}")


def evaluate(data: Any, steps: tuple[Step, ...]) -> Iterator[Any]:
    """Yield every value reached by following ``steps`` from ``data``."""

    if not steps:
        yield data
        return
    step, rest = steps[0], steps[1:]
    match step:
        case Field(name=name):
            if isinstance(data, dict) and name in data:
                yield from evaluate(data[name], rest)
        case Index(position=position):
            if isinstance(data, list) and -len(data) <= position < len(data):
                yield from evaluate(data[position], rest)
        case Wildcard():
            if isinstance(data, list):
                for item in data:
                    yield from evaluate(item, rest)


def _as_version(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


def first_version(data: Any, path: str) -> str:
    """The first string (or number) reached by ``path``."""

    steps = compile_path(path)
    for value in evaluate(data, steps):
        if (version := _as_version(value)) is not None and version.strip():
            return version
    raise ExtractionFailed(f"no version found at path {path!r}")


def collect_versions(data: Any, path: str, limit: int = MAX_VERSION_HISTORY) -> list[str]:
    """Up to ``limit`` string leaves reached by ``path``, in document order.

    Without a wildcard the path must land on an array whose items are collected.
    Non-string items are skipped.
    """
    steps = compile_path(path)
    if any(isinstance(step, Wildcard) for step in steps):
        leaves: Iterator[Any] = evaluate(data, steps)
    else:
        target = next(evaluate(data, steps), None)
        if not isinstance(target, list):
            raise ExtractionFailed(f"expected an array at path {path!r}")
        leaves = iter(target)

    versions = list(islice((leaf for leaf in leaves if isinstance(leaf, str) and leaf.strip()), limit))
    if not versions:
        raise ExtractionFailed(f"no versions found at path {path!r}")
    return versions

"""Time-bounded cache of validated extraction schemas."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from ebuild_autoupdate.models.cache import AnalysisCacheDocument, AnalysisCacheEntry

from .documents import load_document, save_document

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from ebuild_autoupdate.models.schema import ExtractionSchema

DEFAULT_ANALYSIS_CACHE_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnalysisCache:
    """Package id to validated schema, trusted only while younger than ``ttl``.

    An entry aged exactly ``ttl`` is already stale. Reads with ``bypass`` report
    a miss and leave the stored entry untouched.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        ttl: timedelta = DEFAULT_ANALYSIS_CACHE_TTL,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.path = path
        self.ttl = ttl
        self._now = now
        self._lock = threading.Lock()
        self._entries: dict[str, AnalysisCacheEntry] = {}

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        ttl: timedelta = DEFAULT_ANALYSIS_CACHE_TTL,
        now: Callable[[], datetime] = _utcnow,
    ) -> AnalysisCache:
        cache = cls(path, ttl=ttl, now=now)
        cache.load()
        return cache

    def is_fresh(self, entry: AnalysisCacheEntry) -> bool:
        return self._now() - entry.timestamp < self.ttl

    def get(self, package: str) -> AnalysisCacheEntry | None:
        with self._lock:
            entry = self._entries.get(package)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry

    def get_with_bypass(self, package: str, bypass: bool) -> AnalysisCacheEntry | None:
        if bypass:
            return None
        return self.get(package)

    def set(self, package: str, schema: ExtractionSchema, url: str) -> AnalysisCacheEntry:
        entry = AnalysisCacheEntry(extraction_schema=schema, url=url, timestamp=self._now())
        with self._lock:
            self._entries[package] = entry
        return entry

    def delete(self, package: str) -> bool:
        with self._lock:
            return self._entries.pop(package, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, package: object) -> bool:
        with self._lock:
            return package in self._entries

    def load(self) -> None:
        """Replace in-memory entries with the persisted ones, if any."""

        if self.path is None:
            return
        document = load_document(self.path, AnalysisCacheDocument)
        with self._lock:
            self._entries = dict(document.entries) if document is not None else {}
        logger.debug("Loaded {} analysis cache entries from {}", len(self._entries), self.path)

    def save(self) -> None:
        if self.path is None:
            return
        with self._lock:
            document = AnalysisCacheDocument(entries=dict(self._entries))
        save_document(self.path, document)

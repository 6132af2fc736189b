"""Pending-update ledger.

``PendingLedger`` is the interface the applier depends on. ``PendingList``
is the default implementation: one JSON document guarded by a file lock so
separate processes never interleave read-modify-write cycles.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from filelock import FileLock
from loguru import logger

from ebuild_autoupdate.errors import AutoupdateError
from ebuild_autoupdate.models.pending import PendingDocument, PendingStatus, PendingUpdate

from .documents import load_document, save_document

if TYPE_CHECKING:
    from pathlib import Path


class PendingEntryNotFound(AutoupdateError):
    """Status change requested for a package that is not in the ledger."""


class PendingLedger(Protocol):
    def add(self, update: PendingUpdate) -> None: ...

    def get(self, package: str) -> PendingUpdate | None: ...

    def set_status(self, package: str, status: PendingStatus, detail: str = "") -> None: ...


class PendingList:
    """JSON-file ledger keyed by package id."""

    def __init__(self, path: Path, *, lock_timeout: float = 10.0) -> None:
        self.path = path
        self._lock = FileLock(str(path.with_suffix(path.suffix + ".lock")), timeout=lock_timeout)

    def _read(self) -> PendingDocument:
        return load_document(self.path, PendingDocument) or PendingDocument()

    def add(self, update: PendingUpdate) -> None:
        """Insert or replace the entry for ``update.package``."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            document = self._read()
            stamped = update.model_copy(update={"updated_at": update.updated_at or datetime.now(UTC)})
            document.updates[update.package] = stamped
            save_document(self.path, document)
        logger.info("Queued {} {} -> {}", update.package, update.current_version, update.new_version)

    def get(self, package: str) -> PendingUpdate | None:
        if not self.path.exists():
            return None
        with self._lock:
            return self._read().updates.get(package)

    def entries(self) -> list[PendingUpdate]:
        if not self.path.exists():
            return []
        with self._lock:
            updates = self._read().updates
        return [updates[package] for package in sorted(updates)]

    def set_status(self, package: str, status: PendingStatus, detail: str = "") -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            document = self._read()
            current = document.updates.get(package)
            if current is None:
                raise PendingEntryNotFound(f"{package} is not in pending list")
            document.updates[package] = current.model_copy(
                update={"status": status, "detail": detail, "updated_at": datetime.now(UTC)}
            )
            save_document(self.path, document)
        logger.debug("Pending status of {} is now {}", package, status)

    def remove(self, package: str) -> bool:
        if not self.path.exists():
            return False
        with self._lock:
            document = self._read()
            removed = document.updates.pop(package, None) is not None
            if removed:
                save_document(self.path, document)
        return removed

"""JSON documents persisted with atomic writes and a ``.bak`` fallback."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import BaseModel


def _backup_path(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".bak")


def save_document(path: Path, model: BaseModel) -> None:
    """Persist ``model`` as JSON using atomic write (tempfile + os.replace)."""

    path.parent.mkdir(parents=True, exist_ok=True)
    data = model.model_dump_json(indent=2)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        with contextlib.suppress(FileNotFoundError):
            path.replace(_backup_path(path))
        Path(tmp_path).replace(path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


def _try_load_bak[ModelT: BaseModel](path: Path, model_type: type[ModelT], *, reason: str) -> ModelT | None:
    bak = _backup_path(path)
    if not bak.exists():
        return None
    logger.warning("Document {} at {}, trying .bak fallback", reason, path)
    try:
        return model_type.model_validate_json(bak.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError):
        logger.error("Backup document also corrupt at {}", bak)
        return None


def load_document[ModelT: BaseModel](path: Path, model_type: type[ModelT]) -> ModelT | None:
    """Load a JSON document if present, with .bak fallback on corruption."""
    if not path.exists():
        return _try_load_bak(path, model_type, reason="missing")

    try:
        return model_type.model_validate_json(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError):
        result = _try_load_bak(path, model_type, reason="corrupt")
        if result is None and not _backup_path(path).exists():
            logger.error("Document corrupt at {} with no backup", path)
        return result

"""Apply a pending version bump to the overlay.

Per package the ledger moves ``pending -> validated`` once the ebuild copy and
manifest regeneration succeed, or ``pending -> failed`` when a step breaks.
An optional compile test runs afterwards under doas or sudo and, when it
fails, leaves its output in a timestamped log file.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, NoReturn

import typer
from loguru import logger

from ebuild_autoupdate.errors import (
    ApplyError,
    CompileFailed,
    ManifestFailed,
    NoPrivilegeEscalation,
    PackageNotInPending,
    SourceEbuildMissing,
    UserDeclined,
)
from ebuild_autoupdate.models.pending import ApplyResult
from ebuild_autoupdate.overlay.version_files import find_version_files
from ebuild_autoupdate.utils.parsing import safe_package_name, split_package

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from ebuild_autoupdate.models.pending import PendingStatus
    from ebuild_autoupdate.storage.pending import PendingLedger

PRIVILEGE_TOOLS = ("doas", "sudo")
LOG_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    output: str = ""


type CommandRunner = Callable[[Sequence[str], Path], CommandResult]


def run_command(args: Sequence[str], cwd: Path) -> CommandResult:
    """Run ``args`` in ``cwd`` with stdout and stderr combined.

    Raises ``OSError`` when the executable cannot be started.
    """
    completed = subprocess.run(  # noqa: S603
        list(args),
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
    )
    return CommandResult(returncode=completed.returncode, output=completed.stdout or "")


def confirm_on_terminal(prompt: str) -> bool:
    return typer.confirm(prompt, default=False)


def copy_file_synced(source: Path, destination: Path) -> None:
    """Byte-for-byte copy flushed to stable storage before returning."""

    with source.open("rb") as src, destination.open("wb") as dst:
        shutil.copyfileobj(src, dst)
        dst.flush()
        os.fsync(dst.fileno())


class Applier:
    """Applies ledger entries to one overlay. Callers serialize applies per package."""

    def __init__(
        self,
        overlay_path: Path,
        logs_dir: Path,
        ledger: PendingLedger,
        *,
        run_command: CommandRunner = run_command,
        confirm: Callable[[str], bool] = confirm_on_terminal,
        which: Callable[[str], str | None] = shutil.which,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.overlay_path = overlay_path
        self.logs_dir = logs_dir
        self.ledger = ledger
        self._run = run_command
        self._confirm = confirm
        self._which = which
        self._now = now

    def ebuild_path(self, package: str, version: str) -> Path:
        parts = split_package(package)
        if parts is None:
            raise ValueError(f"invalid package name format: {package}")
        category, name = parts
        return self.overlay_path / category / name / f"{name}-{version}.ebuild"

    def apply(self, package: str, compile_test: bool = False) -> ApplyResult:
        """Copy the ebuild to the new version and regenerate its manifest.

        Raises an ``ApplyError`` subclass naming the failed stage; the error's
        ``result`` holds the package, both versions, and any compile log path.
        """
        result = ApplyResult(package=package)
        update = self.ledger.get(package)
        if update is None:
            self._raise(result, PackageNotInPending(f"{package}: not in pending list", result))

        result.old_version, result.new_version = update.current_version, update.new_version
        try:
            source = self.ebuild_path(package, update.current_version)
            destination = self.ebuild_path(package, update.new_version)
        except ValueError as exc:
            self._fail(result, ApplyError(str(exc), result))

        if not source.is_file():
            self._fail(result, SourceEbuildMissing(f"source ebuild file not found: {source}", result))
        if destination == source:
            self._fail(
                result, ApplyError(f"{package}: new version {update.new_version} matches the current ebuild", result)
            )
        try:
            copy_file_synced(source, destination)
        except OSError as exc:
            self._fail(result, ApplyError(f"failed to copy ebuild: {exc}", result), cause=exc)
        logger.info("Copied {} -> {}", source.name, destination.name)
        result.version_files = self._version_files(package, update.current_version)

        self._regenerate_manifest(result, destination)
        self._set_status(result, "validated")

        if compile_test:
            self._compile(result, destination)

        result.success = True
        logger.info("Applied {} {} -> {}", package, result.old_version, result.new_version)
        return result

    def _version_files(self, package: str, version: str) -> list[Path]:
        category, name = package.split("/", 1)
        found = [entry.path for entry in find_version_files(self.overlay_path, category, name, version)]
        for path in found:
            logger.warning("{} mentions {} and may need renaming: {}", package, version, path.name)
        return found

    def _regenerate_manifest(self, result: ApplyResult, ebuild: Path) -> None:
        try:
            outcome = self._run(["ebuild", str(ebuild), "manifest"], self.overlay_path)
        except OSError as exc:
            self._fail(result, ManifestFailed(f"ebuild manifest command failed: {exc}", result), cause=exc)
        if outcome.returncode != 0:
            detail = outcome.output.strip().splitlines()[-1:] or [f"exit status {outcome.returncode}"]
            self._fail(result, ManifestFailed(f"ebuild manifest command failed: {detail[0]}", result))

    def _privilege_tool(self) -> str | None:
        return next((tool for tool in PRIVILEGE_TOOLS if self._which(tool)), None)

    def _compile(self, result: ApplyResult, ebuild: Path) -> None:
        prompt = f"Run compile test for {result.package}-{result.new_version} with elevated privileges?"
        if not self._confirm(prompt):
            self._raise(result, UserDeclined("user declined compile test", result))

        tool = self._privilege_tool()
        if tool is None:
            self._fail(
                result, NoPrivilegeEscalation("no privilege escalation tool available (sudo or doas)", result)
            )

        try:
            outcome = self._run([tool, "ebuild", str(ebuild), "clean", "compile"], self.overlay_path)
        except OSError as exc:
            outcome = CommandResult(returncode=-1, output=str(exc))
        if outcome.returncode == 0:
            return

        result.log_path = self._save_compile_log(result, outcome.output)
        self._fail(
            result,
            CompileFailed(f"compile test failed with exit status {outcome.returncode}", result, result.log_path),
        )

    def _save_compile_log(self, result: ApplyResult, output: str) -> Path | None:
        timestamp = self._now().strftime(LOG_TIMESTAMP_FORMAT)
        log_path = self.logs_dir / f"{safe_package_name(result.package)}-{result.new_version}-{timestamp}.log"
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            log_path.write_text(output, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write compile log {}: {}", log_path, exc)
            return None
        return log_path

    def _set_status(self, result: ApplyResult, status: PendingStatus, detail: str = "") -> None:
        try:
            self.ledger.set_status(result.package, status, detail)
        except Exception as exc:
            self._raise(result, ApplyError(f"failed to update status: {exc}", result), cause=exc)

    def _fail(self, result: ApplyResult, error: ApplyError, *, cause: BaseException | None = None) -> NoReturn:
        """Mark the ledger entry failed, then raise ``error``."""

        try:
            self.ledger.set_status(result.package, "failed", str(error))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Also failed to mark {} as failed: {}", result.package, exc)
        logger.error("Apply of {} failed: {}", result.package, error)
        self._raise(result, error, cause=cause)

    @staticmethod
    def _raise(result: ApplyResult, error: ApplyError, *, cause: BaseException | None = None) -> NoReturn:
        result.error = error
        result.success = False
        if cause is not None:
            raise error from cause
        raise error

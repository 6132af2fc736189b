"""Exception hierarchy shared across the package."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from ebuild_autoupdate.models.pending import ApplyResult


class AutoupdateError(Exception):
    """Base class for every error raised by ebuild-autoupdate."""


# Configuration


class ConfigError(AutoupdateError):
    """Schema configuration is missing or invalid."""


class PackagesConfigNotFound(ConfigError):
    """No packages.toml in the overlay."""


class MissingField(ConfigError):
    """A required schema field is absent."""

    def __init__(self, package: str, field: str, reason: str = "") -> None:
        self.package = package
        self.field = field
        detail = f"{package}: missing required field '{field}'"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail)


class InvalidParserType(ConfigError):
    """Parser is not one of the recognized strategies."""

    def __init__(self, package: str, parser: str) -> None:
        self.package = package
        self.parser = parser
        super().__init__(f"{package}: invalid parser type '{parser}' (must be json, regex, or html)")


class InvalidFallback(ConfigError):
    """Fallback strategy repeats the primary, is unknown, or lacks its locator."""


# Overlay


class PackageNotFound(AutoupdateError):
    """Package id is malformed or its directory does not exist."""


class EbuildNotFound(AutoupdateError):
    """No versioned ebuild exists for the package."""


class ParseFailed(AutoupdateError):
    """An ebuild or package directory could not be read."""


# Extraction and validation


class ExtractionFailed(AutoupdateError):
    """No version could be produced from the content."""


class VersionMismatch(AutoupdateError):
    """Extracted version differs from the recorded one."""

    def __init__(self, extracted: str, recorded: str) -> None:
        self.extracted = extracted
        self.recorded = recorded
        super().__init__(f"version mismatch: extracted {extracted!r}, recorded {recorded!r}")


class NoValidSchema(AutoupdateError):
    """None of the discovered data sources produced a validated schema."""


# Rate limiting


class RateLimitExceeded(AutoupdateError):
    """A blocking wait was cancelled before a token became available."""


# Remote LLM capability


class LLMError(AutoupdateError):
    """Base class for LLM provider failures."""


class LLMNotConfigured(LLMError):
    """No LLM provider is configured."""


class LLMAPIKeyMissing(LLMError):
    """The provider needs an API key and none was found."""


class LLMUnsupportedProvider(LLMError):
    """Unknown provider name."""


class LLMConnectionFailed(LLMError):
    """Provider endpoint could not be reached."""


class LLMRequestFailed(LLMError):
    """Provider answered with a non-success status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"LLM request failed with status {status_code}: {body[:200]}")


class LLMEmptyResponse(LLMError):
    """Provider answered without any usable text."""


# Apply


class ApplyError(AutoupdateError):
    """An apply stage failed; ``result`` carries the full outcome."""

    def __init__(self, message: str, result: ApplyResult) -> None:
        self.result = result
        super().__init__(message)


class PackageNotInPending(ApplyError):
    """Package has no entry in the pending ledger."""


class SourceEbuildMissing(ApplyError, EbuildNotFound):
    """The ebuild for the current version is missing."""


class ManifestFailed(ApplyError):
    """Manifest regeneration exited non-zero or could not run."""


class NoPrivilegeEscalation(ApplyError):
    """Neither doas nor sudo is available."""


class UserDeclined(ApplyError):
    """The compile test was declined at the confirmation prompt."""


class CompileFailed(ApplyError):
    """The privileged compile test exited non-zero."""

    def __init__(self, message: str, result: ApplyResult, log_path: Path | None) -> None:
        self.log_path = log_path
        super().__init__(message, result)

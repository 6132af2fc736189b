"""packages.toml: per-package extraction schemas kept in the overlay.

Each ``["category/package"]`` table holds a flat ``PackageConfig``. The file
is read and written with tomlkit so hand-written comments and layout survive
updates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import tomlkit
from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from tomlkit.exceptions import ParseError

from ebuild_autoupdate.errors import (
    ConfigError,
    InvalidFallback,
    InvalidParserType,
    MissingField,
    PackagesConfigNotFound,
)
from ebuild_autoupdate.models.schema import CONFIG_PARSERS, KNOWN_PARSERS, ExtractionSchema, PackageConfig

if TYPE_CHECKING:
    from pathlib import Path

CONFIG_DIR_NAME = ".autoupdate"
CONFIG_FILE_NAME = "packages.toml"


def packages_config_path(overlay_path: Path) -> Path:
    return overlay_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _require_locator(
    package: str,
    parser: str,
    config: PackageConfig,
    *,
    pattern: str | None,
    pattern_field: str,
) -> None:
    match parser:
        case "json" if not config.path:
            raise MissingField(package, "path", f"required for {parser} parser")
        case "regex" if not pattern:
            raise MissingField(package, pattern_field, "required for regex parser")
        case "html" if not (config.selector or config.xpath):
            raise MissingField(package, "selector", "selector or xpath required for html parser")


def validate_package_config(package: str, config: PackageConfig) -> None:
    """Raise a ``ConfigError`` describing the first problem with ``config``.

    ``url`` and ``parser`` are always required, each parser needs its own
    locator, and a fallback parser must differ from the primary one and carry
    its own locator.
    """
    if not config.url:
        raise MissingField(package, "url")
    if not config.parser:
        raise MissingField(package, "parser")
    if config.parser not in CONFIG_PARSERS:
        raise InvalidParserType(package, config.parser)
    _require_locator(package, config.parser, config, pattern=config.pattern, pattern_field="pattern")

    fallback = config.fallback_parser
    if not fallback:
        return
    if fallback not in KNOWN_PARSERS:
        raise InvalidParserType(package, fallback)
    if fallback == config.parser:
        raise InvalidFallback(f"{package}: fallback_parser must differ from parser {config.parser!r}")
    _require_locator(package, fallback, config, pattern=config.fallback_pattern, pattern_field="fallback_pattern")


class PackagesConfig(BaseModel):
    """All package tables of one overlay."""

    packages: dict[str, PackageConfig] = Field(default_factory=dict)

    def get(self, package: str) -> PackageConfig | None:
        return self.packages.get(package)

    def schema_for(self, package: str) -> ExtractionSchema | None:
        """Validated schema for ``package``, or None when it has no table."""

        config = self.packages.get(package)
        if config is None:
            return None
        validate_package_config(package, config)
        return ExtractionSchema.from_config(config)

    def validate_all(self) -> None:
        for package in sorted(self.packages):
            validate_package_config(package, self.packages[package])


def parse_packages_config(text: str) -> PackagesConfig:
    try:
        document = tomlkit.parse(text)
    except ParseError as exc:
        raise ConfigError(f"failed to parse packages.toml: {exc}") from exc

    packages: dict[str, PackageConfig] = {}
    for package, table in document.unwrap().items():
        if not isinstance(table, dict):
            raise ConfigError(f"{package}: expected a table, got {type(table).__name__}")
        try:
            packages[package] = PackageConfig.model_validate(table)
        except ValidationError as exc:
            raise ConfigError(f"{package}: {exc}") from exc
    return PackagesConfig(packages=packages)


def load_packages_config(overlay_path: Path) -> PackagesConfig:
    """Read ``{overlay}/.autoupdate/packages.toml``."""

    path = packages_config_path(overlay_path)
    if not path.is_file():
        raise PackagesConfigNotFound(f"packages.toml not found at {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read {path}: {exc}") from exc
    config = parse_packages_config(text)
    logger.debug("Loaded {} package schemas from {}", len(config.packages), path)
    return config


def save_package_config(overlay_path: Path, package: str, config: PackageConfig) -> Path:
    """Write or replace one package table, keeping the rest of the file intact."""

    path = packages_config_path(overlay_path)
    document = tomlkit.parse(path.read_text(encoding="utf-8")) if path.is_file() else tomlkit.document()

    table = tomlkit.table()
    fields = cast(dict[str, Any], config.model_dump(exclude_none=True, exclude_defaults=True))
    for key in ("url", "parser"):
        table.add(key, fields.pop(key, getattr(config, key)))
    for key, value in fields.items():
        table.add(key, value)
    document[package] = table

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(document), encoding="utf-8")
    logger.info("Saved schema for {} to {}", package, path)
    return path

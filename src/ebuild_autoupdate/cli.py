"""ebuild-autoupdate CLI."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ebuild_autoupdate.clients.http import create_http_client, fetch_content
from ebuild_autoupdate.clients.llm import LLMProvider, create_llm_provider
from ebuild_autoupdate.clients.ratelimit import RateLimiter
from ebuild_autoupdate.config import (
    PackagesConfig,
    load_packages_config,
    packages_config_path,
    save_package_config,
)
from ebuild_autoupdate.errors import ApplyError, AutoupdateError, CompileFailed, ConfigError, LLMError
from ebuild_autoupdate.extraction.history import extract_version_history
from ebuild_autoupdate.models.analysis import AnalysisResult
from ebuild_autoupdate.models.pending import PendingUpdate
from ebuild_autoupdate.pipeline.analyzer import Analyzer
from ebuild_autoupdate.pipeline.applier import Applier
from ebuild_autoupdate.settings import Settings
from ebuild_autoupdate.storage.analysis_cache import AnalysisCache
from ebuild_autoupdate.storage.pending import PendingList

app = typer.Typer(help="Upstream version discovery and version bumps for Gentoo overlays")
console = Console()


def _settings_from_args(overlay: Path | None = None, config_dir: Path | None = None) -> Settings:
    settings = Settings()
    if overlay is not None:
        settings.overlay_path = overlay
    if config_dir is not None:
        settings.config_dir = config_dir
    return settings


def _load_packages(settings: Settings) -> PackagesConfig | None:
    if not packages_config_path(settings.overlay_path).is_file():
        return None
    return load_packages_config(settings.overlay_path)


def _open_cache(settings: Settings) -> AnalysisCache:
    return AnalysisCache.open(settings.cache_path, ttl=timedelta(hours=settings.cache_ttl_hours))


def _optional_llm(settings: Settings, client) -> LLMProvider | None:  # noqa: ANN001
    if settings.llm_provider is None:
        return None
    try:
        return create_llm_provider(settings, client)
    except LLMError as exc:
        logger.warning("LLM disabled: {}", exc)
        return None


def _render_analysis(result: AnalysisResult) -> Table:
    table = Table(title=f"Analysis: {result.package}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("version", result.version)
    table.add_row("source", f"{result.source.type} {result.source.url}")
    table.add_row("parser", result.extraction_schema.parser)
    table.add_row("fallback", result.extraction_schema.fallback_parser or "-")
    table.add_row("cached", "yes" if result.from_cache else "no")
    for attempt in result.attempts:
        if attempt.error:
            table.add_row("skipped", f"{attempt.source.url}: {attempt.error}")
    return table


@app.command("analyze")
def analyze(
    package: str = typer.Argument(..., help="Package id, e.g. dev-python/requests"),
    overlay: Path | None = typer.Option(None, "--overlay"),
    config_dir: Path | None = typer.Option(None, "--config-dir"),
    url: str | None = typer.Option(None, "--url", help="Check this endpoint first"),
    hint: str = typer.Option("", "--hint", help="Extra guidance for LLM schema analysis"),
    force: bool = typer.Option(False, "--force", help="Ignore the analysis cache"),
    save: bool = typer.Option(False, "--save", help="Write the validated schema to packages.toml"),
) -> None:
    """Find and validate a version extraction schema for a package."""

    settings = _settings_from_args(overlay, config_dir)
    try:
        packages = _load_packages(settings)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc

    async def _run() -> AnalysisResult:
        limiter = RateLimiter.from_settings(settings)
        async with await create_http_client(settings) as client:
            analyzer = Analyzer(
                settings.overlay_path,
                client,
                limiter,
                _open_cache(settings),
                llm=_optional_llm(settings, client),
                packages=packages,
            )
            return await analyzer.analyze(package, provided_url=url, hint=hint, force=force)

    try:
        result = asyncio.run(_run())
    except AutoupdateError as exc:
        console.print(f"[red]analysis failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(_render_analysis(result))
    if save:
        path = save_package_config(settings.overlay_path, package, result.extraction_schema.to_config())
        console.print(f"schema saved to {path}")


@app.command("history")
def history(
    package: str = typer.Argument(...),
    overlay: Path | None = typer.Option(None, "--overlay"),
) -> None:
    """Show recent upstream versions using the package's configured schema."""

    settings = _settings_from_args(overlay)
    try:
        packages = _load_packages(settings)
        schema = packages.schema_for(package) if packages is not None else None
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if schema is None:
        raise typer.BadParameter(f"No packages.toml entry for {package}")

    async def _run() -> list[str]:
        limiter = RateLimiter.from_settings(settings)
        async with await create_http_client(settings) as client:
            fetched = await fetch_content(client, limiter, schema.url, headers=schema.headers)
        return extract_version_history(fetched.body, schema)

    try:
        versions = asyncio.run(_run())
    except (AutoupdateError, httpx.HTTPError) as exc:
        console.print(f"[red]history failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    if not versions:
        console.print(f"{package} has no version history locator configured")
        return
    for version in versions:
        console.print(version)


@app.command("queue")
def queue(
    package: str = typer.Argument(...),
    current_version: str = typer.Argument(...),
    new_version: str = typer.Argument(...),
    config_dir: Path | None = typer.Option(None, "--config-dir"),
) -> None:
    """Add a proposed version bump to the pending list."""

    settings = _settings_from_args(config_dir=config_dir)
    PendingList(settings.pending_path).add(
        PendingUpdate(package=package, current_version=current_version, new_version=new_version)
    )
    console.print(f"queued {package} {current_version} -> {new_version}")


@app.command("pending")
def pending(config_dir: Path | None = typer.Option(None, "--config-dir")) -> None:
    """List pending version bumps."""

    settings = _settings_from_args(config_dir=config_dir)
    table = Table(title="Pending updates")
    table.add_column("Package")
    table.add_column("Current")
    table.add_column("New")
    table.add_column("Status")
    table.add_column("Detail")
    for update in PendingList(settings.pending_path).entries():
        table.add_row(update.package, update.current_version, update.new_version, update.status, update.detail)
    console.print(table)


@app.command("apply")
def apply(
    package: str = typer.Argument(...),
    overlay: Path | None = typer.Option(None, "--overlay"),
    config_dir: Path | None = typer.Option(None, "--config-dir"),
    compile_test: bool = typer.Option(False, "--compile", help="Run a privileged compile test afterwards"),
) -> None:
    """Copy the ebuild to the pending version and regenerate its manifest."""

    settings = _settings_from_args(overlay, config_dir)
    applier = Applier(settings.overlay_path, settings.logs_dir, PendingList(settings.pending_path))
    try:
        result = applier.apply(package, compile_test=compile_test)
    except ApplyError as exc:
        console.print(f"[red]apply failed:[/red] {exc}")
        if isinstance(exc, CompileFailed) and exc.log_path is not None:
            console.print(f"compile log: {exc.log_path}")
        raise typer.Exit(code=1) from exc

    console.print(f"applied {result.package} {result.old_version} -> {result.new_version}")
    for path in result.version_files:
        console.print(f"[yellow]check version-specific file:[/yellow] {path}")


@app.command("validate-config")
def validate_config(overlay: Path | None = typer.Option(None, "--overlay")) -> None:
    """Validate every table in packages.toml."""

    settings = _settings_from_args(overlay)
    try:
        config = load_packages_config(settings.overlay_path)
        config.validate_all()
    except ConfigError as exc:
        console.print(f"[red]invalid:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"packages.toml ok: {len(config.packages)} packages")


@app.command("cache-clear")
def cache_clear(
    package: str | None = typer.Argument(None),
    config_dir: Path | None = typer.Option(None, "--config-dir"),
) -> None:
    """Forget cached schemas (all, or one package)."""

    settings = _settings_from_args(config_dir=config_dir)
    cache = _open_cache(settings)
    if package is None:
        cache.clear()
    elif not cache.delete(package):
        console.print(f"{package} is not cached")
        return
    cache.save()
    console.print("cache cleared")


if __name__ == "__main__":
    app()

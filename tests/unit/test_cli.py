"""Tests for CLI module."""

from __future__ import annotations

import subprocess
from datetime import UTC, datetime
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from ebuild_autoupdate import cli
from ebuild_autoupdate.cli import _settings_from_args, app
from ebuild_autoupdate.config import packages_config_path
from ebuild_autoupdate.storage import AnalysisCache, PendingList
from tests.factories import make_pending, make_schema, write_ebuild

runner = CliRunner()

PYPI_URL = "https://pypi.org/pypi/requests/json"
REQUESTS_TOML = f"""\
["dev-python/requests"]
url = "{PYPI_URL}"
parser = "json"
path = "info.version"
versions_path = "versions"
"""


def _write_packages(overlay: Path, text: str) -> None:
    path = packages_config_path(overlay)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def _mock_client(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    async def fake_create_http_client(settings, transport=None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    monkeypatch.setattr(cli, "create_http_client", fake_create_http_client)
    monkeypatch.setenv("EBUILD_AUTOUPDATE_HTTP_INTERVAL_SECONDS", "0.001")


def _pypi_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"info": {"version": "2.31.0"}, "versions": ["2.31.0", "2.30.0"]})


def test_settings_from_args_overrides(tmp_path: Path) -> None:
    s = _settings_from_args(tmp_path / "overlay", tmp_path / "config")
    assert s.overlay_path == tmp_path / "overlay"
    assert s.pending_path == tmp_path / "config" / "pending.json"


def test_queue_and_pending(config_dir: Path) -> None:
    result = runner.invoke(app, ["queue", "app-misc/foo", "1.0", "1.1", "--config-dir", str(config_dir)])
    assert result.exit_code == 0

    result = runner.invoke(app, ["pending", "--config-dir", str(config_dir)])
    assert result.exit_code == 0
    assert "app-misc/foo" in result.output
    assert "pending" in result.output


def test_apply_not_in_pending(overlay: Path, config_dir: Path) -> None:
    result = runner.invoke(app, ["apply", "app-misc/foo", "--overlay", str(overlay), "--config-dir", str(config_dir)])
    assert result.exit_code == 1
    assert "not in pending" in result.output


def test_apply_runs_manifest(overlay: Path, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_ebuild(overlay, "app-misc/foo", "1.0.0")
    PendingList(config_dir / "pending.json").add(make_pending())
    commands: list[list[str]] = []

    def fake_run(args, **kwargs) -> subprocess.CompletedProcess:
        commands.append(args)
        return subprocess.CompletedProcess(args, 0, stdout="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = runner.invoke(app, ["apply", "app-misc/foo", "--overlay", str(overlay), "--config-dir", str(config_dir)])

    assert result.exit_code == 0
    assert (overlay / "app-misc" / "foo" / "foo-1.1.0.ebuild").exists()
    assert commands[0][-1] == "manifest"
    update = PendingList(config_dir / "pending.json").get("app-misc/foo")
    assert update is not None
    assert update.status == "validated"


def test_apply_manifest_failure(overlay: Path, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_ebuild(overlay, "app-misc/foo", "1.0.0")
    PendingList(config_dir / "pending.json").add(make_pending())
    monkeypatch.setattr(
        subprocess, "run", lambda args, **kwargs: subprocess.CompletedProcess(args, 1, stdout="digest error")
    )

    result = runner.invoke(app, ["apply", "app-misc/foo", "--overlay", str(overlay), "--config-dir", str(config_dir)])

    assert result.exit_code == 1
    assert "apply failed" in result.output
    update = PendingList(config_dir / "pending.json").get("app-misc/foo")
    assert update is not None
    assert update.status == "failed"


def test_validate_config(overlay: Path) -> None:
    _write_packages(overlay, REQUESTS_TOML)
    result = runner.invoke(app, ["validate-config", "--overlay", str(overlay)])
    assert result.exit_code == 0
    assert "1 packages" in result.output

    _write_packages(overlay, '["app-misc/foo"]\nurl = "https://x"\nparser = "yaml"\n')
    result = runner.invoke(app, ["validate-config", "--overlay", str(overlay)])
    assert result.exit_code == 1
    assert "invalid parser type" in result.output


def test_cache_clear(config_dir: Path) -> None:
    cache = AnalysisCache(config_dir / "analysis_cache.json", now=lambda: datetime.now(UTC))
    cache.set("app-misc/foo", make_schema(), "https://example.com")
    cache.set("app-misc/bar", make_schema(), "https://example.com")
    cache.save()

    result = runner.invoke(app, ["cache-clear", "app-misc/foo", "--config-dir", str(config_dir)])
    assert result.exit_code == 0
    reopened = AnalysisCache.open(config_dir / "analysis_cache.json")
    assert "app-misc/foo" not in reopened
    assert "app-misc/bar" in reopened

    result = runner.invoke(app, ["cache-clear", "--config-dir", str(config_dir)])
    assert result.exit_code == 0
    assert len(AnalysisCache.open(config_dir / "analysis_cache.json")) == 0


def test_analyze_with_configured_schema(overlay: Path, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_ebuild(overlay, "dev-python/requests", "2.31.0", homepage="https://pypi.org/project/requests")
    _write_packages(overlay, REQUESTS_TOML)
    _mock_client(monkeypatch, _pypi_handler)

    result = runner.invoke(
        app, ["analyze", "dev-python/requests", "--overlay", str(overlay), "--config-dir", str(config_dir)]
    )

    assert result.exit_code == 0, result.output
    assert "2.31.0" in result.output
    assert "dev-python/requests" in AnalysisCache.open(config_dir / "analysis_cache.json")


def test_analyze_failure_exits_nonzero(overlay: Path, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_ebuild(overlay, "dev-python/requests", "2.0.0", homepage="https://pypi.org/project/requests")
    _write_packages(overlay, REQUESTS_TOML)
    _mock_client(monkeypatch, _pypi_handler)

    result = runner.invoke(
        app, ["analyze", "dev-python/requests", "--overlay", str(overlay), "--config-dir", str(config_dir)]
    )

    assert result.exit_code == 1
    assert "analysis failed" in result.output


def test_history(overlay: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_packages(overlay, REQUESTS_TOML)
    _mock_client(monkeypatch, _pypi_handler)

    result = runner.invoke(app, ["history", "dev-python/requests", "--overlay", str(overlay)])

    assert result.exit_code == 0
    assert result.output.split() == ["2.31.0", "2.30.0"]


def test_history_requires_configured_package(overlay: Path) -> None:
    result = runner.invoke(app, ["history", "dev-python/requests", "--overlay", str(overlay)])
    assert result.exit_code != 0

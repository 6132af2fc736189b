"""Shared pytest fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from tenacity import wait_none

from ebuild_autoupdate.clients.http import fetch_with_retry
from ebuild_autoupdate.clients.llm import post_json
from ebuild_autoupdate.clients.ratelimit import RateLimiter
from ebuild_autoupdate.settings import Settings

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def overlay(tmp_path: Path) -> Path:
    path = tmp_path / "overlay"
    path.mkdir()
    return path


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture
def settings(overlay: Path, config_dir: Path) -> Settings:
    return Settings(overlay_path=overlay, config_dir=config_dir)


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Limiter whose buckets refill almost immediately."""
    return RateLimiter(llm_interval=0.001, http_interval=0.001)


@pytest.fixture
def no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetch_with_retry.retry, "wait", wait_none())
    monkeypatch.setattr(post_json.retry, "wait", wait_none())

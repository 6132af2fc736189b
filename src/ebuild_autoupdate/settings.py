"""Runtime settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LLMProviderName = Literal["claude", "openai", "ollama"]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="EBUILD_AUTOUPDATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    overlay_path: Path = Path(".")
    config_dir: Path = Path.home() / ".config" / "ebuild-autoupdate"
    request_timeout: float = Field(default=30.0, ge=1, le=120)

    llm_provider: LLMProviderName | None = None
    llm_model: str | None = None
    llm_api_key_env: str | None = None
    llm_base_url: str | None = None

    llm_interval_seconds: float = Field(default=12.0, gt=0)
    http_interval_seconds: float = Field(default=6.0, gt=0)
    cache_ttl_hours: float = Field(default=24.0, gt=0)
    max_content_chars: int = Field(default=4000, ge=100, le=100_000)

    @property
    def logs_dir(self) -> Path:
        return self.config_dir / "logs"

    @property
    def cache_path(self) -> Path:
        return self.config_dir / "analysis_cache.json"

    @property
    def pending_path(self) -> Path:
        return self.config_dir / "pending.json"

    @property
    def packages_config_path(self) -> Path:
        return self.overlay_path / ".autoupdate" / "packages.toml"

"""Configuration loader for balancewatch using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (BALANCEWATCH_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("BALANCEWATCH_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "BALANCEWATCH_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_BROWSER__")

    headless: bool = True
    nav_timeout_ms: int = 25_000  # default for platforms without a tuned timeout
    user_agent: str = ""
    proxy: str = ""
    sandbox: bool = False
    randomize_fingerprint: bool = True
    apply_stealth_scripts: bool = True


class FetchSettings(BaseSettings):
    """Per-wallet fetch, retry, and validation settings."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_FETCH__")

    max_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = 2.0
    quick_api_timeout_seconds: float = 10.0
    min_value: float = 10.0
    max_value: float = 10_000_000.0
    placeholder_text: str = "Unavailable"


class SchedulerSettings(BaseSettings):
    """Cycle scheduler pacing and guard settings."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_SCHEDULER__")

    interval_seconds: float = 3600.0
    inter_wallet_delay_seconds: float = 20.0
    min_wallet_interval_seconds: float = 60.0
    initial_fetch_delay_seconds: float = 5.0
    max_consecutive_failures: int = 3  # 0 disables the abort
    force_timeout_seconds: float = 300.0


class HistorySettings(BaseSettings):
    """Persistent history log configuration."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_HISTORY__")

    sqlite_path: str = "data/wallet_history.db"
    max_entries_per_wallet: int = Field(default=20, ge=1)


class QuickApiSettings(BaseSettings):
    """Lightweight balance endpoints that skip browser rendering."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_QUICK_API__")

    debank_access_key: str = ""
    debank_base_url: str = "https://pro-openapi.debank.com/v1"


class OCRSettings(BaseSettings):
    """Optical fallback (Tesseract) configuration."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_OCR__")

    enabled: bool = True
    tesseract_cmd: str = ""
    region_offset_px: int = 40
    region_height_px: int = 80
    region_max_width_px: int = 600


class MonitorSettings(BaseSettings):
    """Foreground monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="BALANCEWATCH_MONITOR__")

    wallets_file: str = "config/wallets.json"


class PlatformOverride(BaseModel):
    """Per-platform tuning; unset fields keep the built-in profile value."""

    settle_seconds: float | None = None
    nav_timeout_ms: int | None = None
    min_value: float | None = None
    max_value: float | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root balancewatch settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="BALANCEWATCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    quick_api: QuickApiSettings = Field(default_factory=QuickApiSettings)
    ocr: OCRSettings = Field(default_factory=OCRSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    platforms: dict[str, PlatformOverride] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        root = self.project_root
        if not Path(self.history.sqlite_path).is_absolute():
            self.history.sqlite_path = str(root / self.history.sqlite_path)
        if not Path(self.monitor.wallets_file).is_absolute():
            self.monitor.wallets_file = str(root / self.monitor.wallets_file)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()

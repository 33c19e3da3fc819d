"""Configuration loader for walletpilot using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (WALLETPILOT_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(os.getenv("WALLETPILOT_PROJECT_ROOT", Path.cwd()))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "WALLETPILOT_ENV"
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
    """Chromium process and CDP endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="WALLETPILOT_BROWSER__")

    headless: bool = True
    chrome_binary: str = ""  # empty = Playwright's bundled Chromium
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9222
    probe_timeout_ms: int = 2_000
    launch_timeout_ms: int = 15_000
    navigation_timeout_ms: int = 30_000
    action_timeout_ms: int = 30_000  # single-shot page interactions
    window_width: int = 1920
    window_height: int = 1080
    sandbox: bool = True
    extra_args: list[str] = Field(default_factory=list)


class WalletSettings(BaseSettings):
    """Wallet extension addressing and discovery."""

    model_config = SettingsConfigDict(env_prefix="WALLETPILOT_WALLET__")

    extension_name: str = "rabby"
    extension_scheme: str = "chrome-extension"
    # Last-known Chrome Web Store id; used only as a flagged, unverified fallback.
    fallback_extension_id: str = "acmacodkjbdgmoleebolmdjonilkdbch"
    service_worker_timeout_ms: int = 10_000
    extensions_page_settle_ms: int = 1_000
    page_settle_ms: int = 2_000
    release_api_url: str = "https://api.github.com/repos/RabbyHub/Rabby/releases/latest"
    release_download_template: str = "https://github.com/RabbyHub/Rabby/releases/download/{tag}/Rabby_{tag}.zip"

    popup_path: str = "popup.html"
    home_path: str = "index.html"
    onboarding_path: str = "index.html#/new-user/guide"
    import_private_key_path: str = "index.html#/new-user/import/private-key"
    notification_path: str = "notification.html"

    popup_url_markers: list[str] = Field(default_factory=lambda: ["notification", "popup", "confirm"])


class ApprovalSettings(BaseSettings):
    """Timing and retry budget for popup approval flows."""

    model_config = SettingsConfigDict(env_prefix="WALLETPILOT_APPROVAL__")

    timeout_ms: int = 30_000
    trigger_popup_timeout_ms: int = 3_000
    reject_timeout_ms: int = 10_000
    check_timeout_ms: int = 5_000
    load_settle_ms: int = 1_000
    settle_ms: int = 2_000
    poll_interval_ms: int = 500
    close_wait_ms: int = 10_000
    action_retries: int = 3
    followup_retries: int = 1
    retry_backoff_ms: int = 500
    click_timeout_ms: int = 5_000
    post_click_ms: int = 1_000

    @field_validator("action_retries", "followup_retries")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry budgets must be >= 1")
        return v


class OutputSettings(BaseSettings):
    """Artifact locations: screenshots, profile, sidecars."""

    model_config = SettingsConfigDict(env_prefix="WALLETPILOT_OUTPUT__")

    output_dir: str = "test-output"
    screenshot_format: str = "jpeg"  # jpeg | png
    screenshot_quality: int = 60
    session_file: str = ".browser-cdp.json"
    profile_dir: str = "chrome-profile"
    credentials_file: str = "tests/.test-env"
    log_level: str = "WARNING"

    @field_validator("screenshot_format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("jpeg", "png"):
            raise ValueError(f"unsupported screenshot format: {v}")
        return v

    @property
    def screenshots_dir(self) -> Path:
        return Path(self.output_dir) / "screenshots"

    @property
    def extensions_dir(self) -> Path:
        return Path(self.output_dir) / "extensions"

    @property
    def user_data_dir(self) -> Path:
        return Path(self.output_dir) / self.profile_dir

    @property
    def session_path(self) -> Path:
        return Path(self.output_dir) / self.session_file

    @property
    def content_path(self) -> Path:
        return Path(self.output_dir) / "page-content.html"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root walletpilot settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPILOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    wallet: WalletSettings = Field(default_factory=WalletSettings)
    approval: ApprovalSettings = Field(default_factory=ApprovalSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

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
        if not Path(self.output.output_dir).is_absolute():
            self.output.output_dir = str(root / self.output.output_dir)
        if not Path(self.output.credentials_file).is_absolute():
            self.output.credentials_file = str(root / self.output.credentials_file)
        return self

    def ensure_directories(self) -> None:
        """Create the output, screenshot and extension directories if missing."""
        for path in (
            Path(self.output.output_dir),
            self.output.screenshots_dir,
            self.output.extensions_dir,
        ):
            path.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()

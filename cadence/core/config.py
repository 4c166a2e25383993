"""
Cadence Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (CADENCE_*)
3. Project config (./cadence.toml)
4. User config (~/.cadence/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    CADENCE_CALENDAR_TIME_ZONE → calendar.time_zone
    CADENCE_CALENDAR_ID → calendar.calendar_id
    CADENCE_TOKEN_SERVICE_URL → token_service.base_url
    CADENCE_STORE_PATH → store.path
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cadence.core.errors import ConfigError

_HHMM = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class GenerationConfig(BaseModel):
    """Rolling window of materialized instances."""

    window_days: int = 90
    min_days_ahead: int = 30


class CalendarConfig(BaseModel):
    """Calendar provider configuration."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    provider: str = "google"
    api_base_url: str = "https://www.googleapis.com/calendar/v3"
    calendar_id: str = "primary"
    time_zone: str = "America/Los_Angeles"
    default_start: str = "09:00"
    default_end: str = "11:00"
    reminder_minutes: list[int] = Field(default_factory=lambda: [60, 1440])
    refresh_margin_seconds: int = 300
    timeout: float = 30.0

    @field_validator("time_zone")
    @classmethod
    def _valid_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown IANA time zone: {value!r}") from e
        return value

    @field_validator("default_start", "default_end")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"Expected HH:MM, got {value!r}")
        return value


class TokenServiceConfig(BaseModel):
    """Backend that performs the OAuth code exchange and token refresh."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    base_url: str = ""
    exchange_path: str = "/exchangeGoogleCode"
    refresh_path: str = "/getAccessToken"
    timeout: float = 15.0

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


class StoreConfig(BaseModel):
    """Document store configuration."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    backend: str = "sqlite"  # "sqlite" | "memory"
    path: str = "~/.cadence/cadence.db"


class SyncConfig(BaseModel):
    """Bulk sync configuration."""

    max_concurrency: int = 4


class LoggingConfig(BaseModel):
    log_dir: str = "~/.cadence/logs"
    retention_days: int = 14


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class CadenceConfig(BaseModel):
    """Root configuration for Cadence."""

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    token_service: TokenServiceConfig = Field(default_factory=TokenServiceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> CadenceConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        # Layer 1: User config (~/.cadence/config.toml)
        user_config_path = user_path or get_cadence_home() / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        # Layer 2: Project config (./cadence.toml)
        project_config_path = project_path or Path.cwd() / "cadence.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        # Layer 3: Environment variables
        _deep_merge(merged, _load_from_env())

        # Layer 4: Explicit overrides
        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return CadenceConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_store_path(self) -> Path:
        return Path(self.store.path).expanduser()

    def get_log_dir(self) -> Path:
        return Path(self.logging.log_dir).expanduser()


def get_cadence_home() -> Path:
    """Get the Cadence home directory (~/.cadence)."""
    return Path.home() / ".cadence"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from CADENCE_* environment variables."""
    result: dict[str, Any] = {}

    env_mapping = {
        "CADENCE_CALENDAR_TIME_ZONE": ("calendar", "time_zone"),
        "CADENCE_CALENDAR_ID": ("calendar", "calendar_id"),
        "CADENCE_CALENDAR_API_BASE_URL": ("calendar", "api_base_url"),
        "CADENCE_TOKEN_SERVICE_URL": ("token_service", "base_url"),
        "CADENCE_STORE_BACKEND": ("store", "backend"),
        "CADENCE_STORE_PATH": ("store", "path"),
        "CADENCE_GENERATION_WINDOW_DAYS": ("generation", "window_days"),
        "CADENCE_GENERATION_MIN_DAYS_AHEAD": ("generation", "min_days_ahead"),
        "CADENCE_SYNC_MAX_CONCURRENCY": ("sync", "max_concurrency"),
        "CADENCE_LOG_DIR": ("logging", "log_dir"),
    }

    for env_var, (section, key) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in result:
                result[section] = {}
            result[section][key] = _convert_value(value)

    return result


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def _sub(text: str) -> str:
        for var_name in pattern.findall(text):
            text = text.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
        return text

    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _sub(value)
        elif isinstance(value, list):
            data[key] = [_sub(item) if isinstance(item, str) else item for item in value]

"""Configuration management using Pydantic settings with an optional JSON config file."""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Paths ---

APP_NAME = "agatha-search"


def get_config_dir() -> Path:
    """Get the configuration directory (e.g. ~/.config/agatha-search)."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / ".config")).expanduser()
    else:
        base = Path("~/.config").expanduser()
    return base / APP_NAME


def get_config_file() -> Path:
    override = os.environ.get("AGATHA_CONFIG_FILE")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / "config.json"


def load_config_file(path: Path | None = None) -> dict[str, Any]:
    """Load settings from the JSON config file if it exists.

    Unreadable or malformed files are treated as empty so that a broken file
    never prevents startup; environment variables and defaults still apply.
    """
    path = path or get_config_file()
    if not path.exists():
        return {}

    try:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


ThemeType = Literal["light", "dark"]


class PreferenceSettings(BaseSettings):
    """User preferences the workflow reads. Never written by this package."""

    model_config = SettingsConfigDict(env_prefix="AGATHA_PREFERENCES_")

    theme: ThemeType = Field(default="dark")
    max_results: int = Field(default=10, ge=1, le=50)
    auto_analyze: bool = Field(default=True, description="Enrich results right after discovery")
    default_provider: str = Field(default="anthropic")
    default_model: str = Field(default="claude-3-5-sonnet-20241022")


class WorkflowSettings(BaseSettings):
    """Search workflow behaviour."""

    model_config = SettingsConfigDict(env_prefix="AGATHA_WORKFLOW_")

    timeout: float = Field(default=30.0, gt=0, description="Timeout per provider call in seconds")
    use_cache: bool = Field(default=True)
    max_concurrent_analysis: int = Field(default=3, ge=1, description="Passed through to providers")
    max_prompt_length: int = Field(default=1000, ge=1)
    max_results_limit: int = Field(default=50, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="AGATHA_LOGGING_")

    level: str = Field(default="INFO")
    json_output: bool = Field(default=True, description="Render structured logs as JSON")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="AGATHA_", extra="ignore")

    preferences: PreferenceSettings = Field(default_factory=PreferenceSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    sections = {}
    for name, section_cls in (("preferences", PreferenceSettings), ("workflow", WorkflowSettings), ("logging", LoggingSettings)):
        # Nested settings read their own env prefix; file values only fill what env leaves unset
        env_section = section_cls()
        explicit = env_section.model_fields_set
        file_section = file_data.get(name) or {}
        merged = {**file_section, **env_section.model_dump(include=explicit)}
        sections[name] = section_cls(**merged)
    return AppSettings(**sections)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return _load_settings()

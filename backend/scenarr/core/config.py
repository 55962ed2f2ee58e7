"""Application configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Nested sections accepted in settings.json and flattened onto prefixed field names
_NESTED_SECTIONS = ("prowlarr", "qbittorrent", "ai", "retry")


def _default_data_dir() -> Path:
    if Path("/config").exists():
        return Path("/config")
    # __file__ is backend/scenarr/core/config.py
    return (Path(__file__).parent.parent.parent / "data").resolve()


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:  # noqa: ANN001
    """Load settings from settings.json file.

    This source has lowest priority - env vars will override JSON values.

    Nested sections such as ``{"prowlarr": {"url": ..., "api_key": ...}}`` are
    flattened to ``prowlarr_url`` / ``prowlarr_api_key``. The ``matching`` section
    is left alone; it is read by ``get_matching_config()``.

    Returns:
        Dictionary with setting keys (lowercase) and values from JSON file.
    """
    data_dir_env = os.environ.get("SCENARR_DATA_DIR", "")
    if data_dir_env and Path(data_dir_env).exists():
        data_dir = Path(data_dir_env)
    else:
        data_dir = _default_data_dir()

    settings_file = data_dir / "config" / "settings.json"
    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return {}

    flattened: dict[str, Any] = {}
    for key, value in data.items():
        if key in _NESTED_SECTIONS and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                flattened[f"{key}_{sub_key}"] = sub_value
        elif key == "matching":
            continue
        else:
            flattened[key] = value

    return {k.lower(): v for k, v in flattened.items()}


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from:
    1. JSON file (settings.json in config directory) - lowest priority
    2. .env file
    3. Environment variables - highest priority (override JSON/.env)

    All settings can be prefixed with SCENARR_ (e.g., SCENARR_ENV=production).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCENARR_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources.

        The first source wins: init kwargs, env vars, .env, then settings.json.
        """
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Base directory for all application data (config, database, logs)",
    )

    # Prowlarr (indexer broker)
    prowlarr_enabled: bool = Field(default=False, description="Enable Prowlarr searches")
    prowlarr_url: str = Field(default="", description="Prowlarr base URL")
    prowlarr_api_key: str = Field(default="", description="Prowlarr API key")
    search_limit: int = Field(
        default=1000, ge=1, description="Maximum results requested per search term"
    )

    # qBittorrent (download client)
    qbittorrent_enabled: bool = Field(default=False, description="Enable qBittorrent")
    qbittorrent_url: str = Field(default="", description="qBittorrent Web UI URL")
    qbittorrent_username: str = Field(default="admin", description="qBittorrent username")
    qbittorrent_password: str = Field(default="", description="qBittorrent password")
    download_category: str = Field(
        default="scenarr", description="Category assigned to torrents added by Scenarr"
    )
    incomplete_path: str = Field(
        default="/media/incomplete", description="Save path for new torrents"
    )
    add_timeout_ms: int = Field(
        default=10000,
        ge=500,
        description="How long to wait for the client to report a hash after adding a torrent",
    )

    # AI matching
    ai_use_cross_encoder: bool = Field(
        default=False, description="Use the cross-encoder instead of lexical matching"
    )
    ai_cross_encoder_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Minimum cross-encoder score to accept a match"
    )
    ai_cross_encoder_model: str = Field(
        default="cross-encoder/ms-marco-MiniLM-L-6-v2",
        description="Cross-encoder model name or path",
    )
    ai_grouping_count: int = Field(
        default=2,
        ge=1,
        description="Minimum torrents in an unmatched group before it is downloaded",
    )
    discovery_min_indexers: int = Field(
        default=3, ge=1, description="Distinct indexers needed to report a discovered scene"
    )

    # Retry
    retry_max_attempts: int = Field(default=5, ge=1, description="Maximum add attempts")
    retry_interval_minutes: int = Field(
        default=5, ge=0, description="Minimum minutes between add attempts (monitor job)"
    )
    retry_subscription_interval_minutes: int = Field(
        default=30, ge=0, description="Minimum minutes between add attempts (subscription job)"
    )

    # Subscription search
    max_torrents_per_run: int = Field(
        default=50, ge=1, description="Maximum torrents enqueued per subscription per run"
    )
    candidate_scene_limit: int = Field(
        default=500, ge=1, description="Maximum candidate scenes loaded for matching"
    )

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files (settings.json, etc.)."""
        return self.data_dir / "config"

    @property
    def database_dir(self) -> Path:
        """Directory for database files."""
        return self.data_dir / "database"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files."""
        return self.data_dir / "logs"

    @property
    def database_file(self) -> Path:
        """SQLite database file."""
        return self.database_dir / "scenarr.db"

    @property
    def prowlarr_configured(self) -> bool:
        """Whether Prowlarr is enabled and has credentials."""
        return bool(self.prowlarr_enabled and self.prowlarr_url and self.prowlarr_api_key)

    @property
    def qbittorrent_configured(self) -> bool:
        """Whether qBittorrent is enabled and has a URL."""
        return bool(self.qbittorrent_enabled and self.qbittorrent_url)

    @property
    def is_debug(self) -> bool:
        """Check if running in debug/development mode."""
        return self.env == "development"

    def model_post_init(self, __context: object) -> None:
        """Post-initialization: create data directories if they don't exist."""
        self.data_dir = self.data_dir.resolve()
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.database_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    The cache is cleared when reload_settings() is called.

    Returns:
        Settings instance
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (JSON, .env, env vars).

    Returns:
        New Settings instance
    """
    get_settings.cache_clear()
    return get_settings()

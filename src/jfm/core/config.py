"""Application configuration using Pydantic Settings.

Supports configuration from multiple sources with the following priority (highest first):
1. Environment variables
2. .env file
3. config.yml settings section
4. Default values

This allows portable configuration in config.yml while keeping API keys in .env.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource

from jfm import __version__


# Load .env file at module import
load_dotenv()


class ConfigurationError(Exception):
    """Raised when a required setting is missing or invalid."""


class YamlSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that reads from config.yml settings section.

    Allows configuration to be defined in YAML while still supporting
    environment variable overrides.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file: Path):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._yaml_data: dict[str, Any] = {}
        self._load_yaml()

    def _load_yaml(self) -> None:
        """Load and parse the YAML file."""
        if not self.yaml_file.exists():
            # Logging is not configured yet at this point
            print(f"[config] YAML config not found: {self.yaml_file}")
            return

        try:
            with open(self.yaml_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load {self.yaml_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {self.yaml_file}")

        settings_data = data.get("settings", {}) or {}
        if not isinstance(settings_data, dict):
            raise ConfigurationError(f"Expected a mapping under 'settings' in {self.yaml_file}")
        self._yaml_data = self._flatten_settings(settings_data)
        print(f"[config] Loaded {len(self._yaml_data)} settings from: {self.yaml_file}")

    def _flatten_settings(self, data: dict, prefix: str = "") -> dict:
        """
        Flatten nested dict to match env var naming.

        Example: destination.admin_username -> destination_admin_username
        """
        result = {}
        for key, value in data.items():
            flat_key = f"{prefix}_{key}" if prefix else key
            if isinstance(value, dict):
                result.update(self._flatten_settings(value, flat_key))
            else:
                result[flat_key] = value
        return result

    def get_field_value(
        self, field: Any, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get value for a specific field from YAML data."""
        value = self._yaml_data.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML."""
        return self._yaml_data


class ServerSettings(BaseModel):
    """Connection settings for one Jellyfin server."""

    url: str = Field(default="")
    api_key: str = Field(default="")


class DestinationSettings(ServerSettings):
    """Destination server settings."""

    # Used to enumerate the whole catalog regardless of per-user restrictions
    admin_username: str = Field(default="")


class SyncSettings(BaseModel):
    """Reconciliation behaviour."""

    page_size: int = Field(default=500, gt=0)
    retry_delay: float = Field(default=5.0, ge=0.0)
    watched_early_exit: bool = Field(
        default=True,
        description="Stop the watched fetch at the first item older than the cutoff",
    )
    destination_exclude_types: bool = Field(
        default=False,
        description="Index everything except non-media types instead of only episodes and movies",
    )
    cutoff_margin_days: int = Field(default=1, ge=0)
    run_offset_hours: int = Field(default=6, ge=0)


class ClientIdentity(BaseModel):
    """Values sent in the X-Emby-Authorization header."""

    client: str = Field(default="Migration")
    device: str = Field(default="Migration Station")
    version: str = Field(default=__version__)


class Settings(BaseSettings):
    """Main application settings."""

    # Source server
    source_url: str = Field(default="")
    source_api_key: str = Field(default="")

    # Destination server
    destination_url: str = Field(default="")
    destination_api_key: str = Field(default="")
    destination_admin_username: str = Field(default="")

    # Sync
    sync_page_size: int = Field(default=500, gt=0)
    sync_retry_delay: float = Field(default=5.0, ge=0.0)
    sync_watched_early_exit: bool = Field(default=True)
    sync_destination_exclude_types: bool = Field(default=False)
    sync_cutoff_margin_days: int = Field(default=1, ge=0)
    sync_run_offset_hours: int = Field(default=6, ge=0)

    # HTTP
    http_timeout: float = Field(default=30.0, gt=0.0)
    client_name: str = Field(default="Migration")
    device_name: str = Field(default="Migration Station")
    client_version: str = Field(default=__version__)

    # Application settings
    log_level: str = Field(default="INFO")
    config_path: Path = Field(default=Path("/config"))
    data_path: Path = Field(default=Path("/data"))
    log_path: Path = Field(default=Path("/logs"))
    dry_run: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
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
        """
        Customize settings sources to include config.yml.

        Priority (highest first):
        1. init_settings - direct arguments to Settings()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - config.yml settings section
        5. file_secret_settings - secret files
        """
        # Default to /config for Docker compatibility
        config_path = Path(os.getenv("CONFIG_PATH", "/config"))
        yaml_file = config_path / "config.yml"

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls, yaml_file),
            file_secret_settings,
        )

    @field_validator("source_url", "destination_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("config_path", "data_path", "log_path", mode="before")
    @classmethod
    def validate_path(cls, v: str | Path) -> Path:
        return Path(v) if isinstance(v, str) else v

    def validate_required(self) -> None:
        """
        Check that every setting needed for a run is present.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        required = {
            "source_url": self.source_url,
            "source_api_key": self.source_api_key,
            "destination_url": self.destination_url,
            "destination_api_key": self.destination_api_key,
            "destination_admin_username": self.destination_admin_username,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(name.upper() for name in missing)}"
            )

    def get_last_run_file(self) -> Path:
        """Get the run-state file (under data)."""
        return self.data_path / "lastrun.log"

    def get_log_path(self) -> Path:
        """Get logs directory path."""
        return self.log_path

    @property
    def source(self) -> ServerSettings:
        """Get source server settings."""
        return ServerSettings(url=self.source_url, api_key=self.source_api_key)

    @property
    def destination(self) -> DestinationSettings:
        """Get destination server settings."""
        return DestinationSettings(
            url=self.destination_url,
            api_key=self.destination_api_key,
            admin_username=self.destination_admin_username,
        )

    @property
    def sync(self) -> SyncSettings:
        """Get sync settings."""
        return SyncSettings(
            page_size=self.sync_page_size,
            retry_delay=self.sync_retry_delay,
            watched_early_exit=self.sync_watched_early_exit,
            destination_exclude_types=self.sync_destination_exclude_types,
            cutoff_margin_days=self.sync_cutoff_margin_days,
            run_offset_hours=self.sync_run_offset_hours,
        )

    @property
    def identity(self) -> ClientIdentity:
        """Get client identity for the authorization header."""
        return ClientIdentity(
            client=self.client_name,
            device=self.device_name,
            version=self.client_version,
        )


def _mask_secret(value: str | None, visible_chars: int = 4) -> str:
    """Mask a secret value, showing only first N characters."""
    if not value:
        return "(not set)"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def log_settings(settings: "Settings") -> None:
    """Log all settings to the logger (API keys are masked)."""
    from loguru import logger

    logger.info("=" * 60)
    logger.info("JELLYFIN MIGRATION - CONFIGURATION")
    logger.info("=" * 60)

    # Paths
    logger.info("[Paths]")
    logger.info(f"  Config path: {settings.config_path}")
    logger.info(f"  Data path:   {settings.data_path}")
    logger.info(f"  Log path:    {settings.log_path}")

    # Source
    logger.info("[Source]")
    logger.info(f"  URL:     {settings.source_url or '(not set)'}")
    logger.info(f"  API Key: {_mask_secret(settings.source_api_key)}")

    # Destination
    logger.info("[Destination]")
    logger.info(f"  URL:            {settings.destination_url or '(not set)'}")
    logger.info(f"  API Key:        {_mask_secret(settings.destination_api_key)}")
    logger.info(f"  Admin Username: {settings.destination_admin_username or '(not set)'}")

    # Sync
    logger.info("[Sync]")
    logger.info(f"  Page Size:         {settings.sync_page_size}")
    logger.info(f"  Retry Delay:       {settings.sync_retry_delay}s")
    logger.info(f"  Early Exit:        {settings.sync_watched_early_exit}")
    logger.info(f"  Exclude Types:     {settings.sync_destination_exclude_types}")
    logger.info(f"  Cutoff Margin:     {settings.sync_cutoff_margin_days} day(s)")
    logger.info(f"  Run Offset:        {settings.sync_run_offset_hours} hour(s)")

    # Application
    logger.info("[Application]")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  Dry Run:   {settings.dry_run}")

    logger.info("=" * 60)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

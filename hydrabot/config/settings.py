"""
Process settings.

Uses Pydantic Settings for validation and environment variable support.
These settings control where the bot finds its config file and cache, and how
it logs. Credentials and guild data live in config.json (see schema.py).
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReplaySettings(BaseSettings):
    """External tools used by the replay handler."""

    screp_path: str = Field(
        default="screp",
        description="Path to the screp executable used to parse replay files",
    )
    map_renderer_command: list[str] = Field(
        default_factory=list,
        description="Command that reads a replay on stdin and writes a map image to stdout. "
                    "Set via HYDRABOT_REPLAY__MAP_RENDERER_COMMAND='[\"bwmapimage\", \"-\"]'. "
                    "If empty, replay embeds are posted without a map image.",
    )
    map_image_extension: str = Field(
        default=".webp", description="File extension of images produced by the renderer"
    )


class Settings(BaseSettings):
    """Main process settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")
    log_include_dates: bool = Field(
        default=False, description="Include the date in log timestamps, not just the time"
    )
    log_channel_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum level mirrored to the Discord log channel"
    )

    # Paths
    config_path: Path = Field(
        default=Path.home() / ".config" / "hydrabot",
        description="Directory containing config.json",
    )
    cache_path: Path = Field(
        default=Path.home() / ".cache" / "hydrabot",
        description="Directory for guild caches, tokens and the instance lock",
    )

    replay: ReplaySettings = Field(default_factory=ReplaySettings)

    model_config = SettingsConfigDict(
        env_prefix="HYDRABOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings

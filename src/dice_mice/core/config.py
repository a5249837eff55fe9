"""Configuration management for the Dice Mice progression engine.

Settings are loaded with pydantic-settings from environment variables and
an optional ``.env`` file. Nested groups are addressed with a double
underscore, e.g. ``DICE_MICE_PROGRESSION__ALLOW_ADVANCED_MODE=false``.

Example:
    >>> from dice_mice.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.progression.allow_advanced_mode
    True

Environment Variables:
    DICE_MICE_DATABASE_PATH: Path to the SQLite character store
    DICE_MICE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    DICE_MICE_JSON_LOGS: Emit JSON log lines instead of console output
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dice_mice.core.exceptions import ConfigurationError


class StorageSettings(BaseSettings):
    """Configuration for the character store.

    Attributes:
        database_path: Path to the SQLite database file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DICE_MICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/dice_mice.db"),
        description="Path to SQLite database",
    )


class ProgressionSettings(BaseSettings):
    """Configuration for level-up behavior.

    Attributes:
        allow_advanced_mode: Whether sessions may switch to advanced mode.
        heal_on_level_up: Restore current HP to the new maximum on commit.
    """

    model_config = SettingsConfigDict(
        env_prefix="DICE_MICE_PROGRESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    allow_advanced_mode: bool = Field(
        default=True,
        description="Allow advanced (free-form) level-ups",
    )
    heal_on_level_up: bool = Field(
        default=True,
        description="Set current HP to max HP after a level-up",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration groups.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Application logging level.
        json_logs: Render logs as JSON.
        log_file: Optional log file path.
        storage: Character store settings.
        progression: Level-up settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="DICE_MICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(
        default="Dice Mice",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON formatted logs",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional file that also receives every log record",
    )

    storage: StorageSettings = Field(default_factory=StorageSettings)
    progression: ProgressionSettings = Field(default_factory=ProgressionSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "StorageSettings",
    "ProgressionSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]

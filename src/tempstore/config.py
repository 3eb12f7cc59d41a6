"""
Configuration management using pydantic-settings.

Loads configuration from environment variables (prefixed ``TEMPSTORE_``)
and .env files. Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        TEMPSTORE_STORE_DIR: Base directory holding the database and blobs
        TEMPSTORE_TTL_SECONDS: Maximum age of an entry before it is swept
        TEMPSTORE_SWEEP_INTERVAL_SECONDS: Delay between periodic sweeps
        TEMPSTORE_LOG_LEVEL: Logging level
        TEMPSTORE_LOG_FILE: Optional JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="TEMPSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    STORE_DIR: Path = Field(
        default=Path(".tempstore"),
        description="Directory for the metadata database and backing files",
    )

    TTL_SECONDS: int = Field(
        default=DEFAULT_TTL_SECONDS,
        ge=1,
        description="Time-to-live of a temporary entry in seconds",
    )
    SWEEP_INTERVAL_SECONDS: int = Field(
        default=60 * 60,
        ge=1,
        description="Seconds between two passes of the periodic sweeper",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(
        default=None, description="Optional path for JSON-lines logs"
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def ttl(self) -> timedelta:
        """Get the TTL as a timedelta."""
        return timedelta(seconds=self.TTL_SECONDS)

    def ensure_directories(self) -> None:
        """Create the store directory if it doesn't exist."""
        self.STORE_DIR.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | None]:
        """Return settings as a flat dict for display."""
        return {
            "STORE_DIR": str(self.STORE_DIR),
            "TTL_SECONDS": self.TTL_SECONDS,
            "SWEEP_INTERVAL_SECONDS": self.SWEEP_INTERVAL_SECONDS,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

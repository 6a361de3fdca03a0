"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates limits and provides typed access to settings.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imgcache import __version__

IMAGE_DIR_NAME = "image_cache"
INDEX_DB_NAME = "storage.db"


class Settings(BaseSettings):
    """Image cache settings loaded from environment variables.

    Optional:
        CACHE_DIR: Root for the image directory and the index database
        MAX_CACHE_SIZE: Ceiling for the summed size of cached files, in bytes
        CACHE_EXPIRY_SECONDS: Age after which an entry is refetched
        EVICTION_LOW_WATER_RATIO: Fraction of MAX_CACHE_SIZE eviction prunes down to
        INDEX_STORAGE_KEY: Storage key the index blob is saved under
        DOWNLOAD_TIMEOUT_S: Per-request timeout for image downloads
        DOWNLOAD_MAX_ATTEMPTS: Attempts for transient download failures
        USER_AGENT: User-Agent header for downloads
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(
        default=Path.home() / ".cache" / "imgcache",
        description="Cache root directory",
    )

    # Invalidation policies
    MAX_CACHE_SIZE: int = Field(
        default=100 * 1024 * 1024, gt=0, description="Cache size ceiling in bytes"
    )
    CACHE_EXPIRY_SECONDS: int = Field(
        default=7 * 24 * 3600, gt=0, description="Entry lifetime in seconds"
    )
    EVICTION_LOW_WATER_RATIO: float = Field(
        default=0.8, gt=0.0, le=1.0, description="Eviction target as a fraction of the ceiling"
    )

    INDEX_STORAGE_KEY: str = Field(
        default="imageCacheIndex", description="Storage key for the index blob"
    )

    # Downloads
    DOWNLOAD_TIMEOUT_S: float = Field(
        default=30.0, gt=0.0, description="Per-request download timeout"
    )
    DOWNLOAD_MAX_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Attempts for transient download failures"
    )
    USER_AGENT: str = Field(
        default=f"imgcache/{__version__}", description="User-Agent for downloads"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("INDEX_STORAGE_KEY")
    @classmethod
    def validate_storage_key(cls, v: str) -> str:
        """Reject blank storage keys."""
        if not v.strip():
            raise ValueError("INDEX_STORAGE_KEY must not be empty")
        return v

    @property
    def image_dir(self) -> Path:
        """Directory holding cached image files."""
        return self.CACHE_DIR / IMAGE_DIR_NAME

    @property
    def index_db_path(self) -> Path:
        """SQLite file holding the persisted index.

        Lives beside the image directory so clearing images leaves it intact.
        """
        return self.CACHE_DIR / INDEX_DB_NAME

    @property
    def cache_expiry(self) -> timedelta:
        return timedelta(seconds=self.CACHE_EXPIRY_SECONDS)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "MAX_CACHE_SIZE": self.MAX_CACHE_SIZE,
            "CACHE_EXPIRY_SECONDS": self.CACHE_EXPIRY_SECONDS,
            "EVICTION_LOW_WATER_RATIO": self.EVICTION_LOW_WATER_RATIO,
            "INDEX_STORAGE_KEY": self.INDEX_STORAGE_KEY,
            "DOWNLOAD_TIMEOUT_S": self.DOWNLOAD_TIMEOUT_S,
            "DOWNLOAD_MAX_ATTEMPTS": self.DOWNLOAD_MAX_ATTEMPTS,
            "USER_AGENT": self.USER_AGENT,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

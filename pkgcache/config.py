"""Configuration settings for pkgcache.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_dir() -> Path:
    """Return the default package cache directory."""
    return Path.home() / ".cache" / "pkgcache" / "packages"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the PKGCACHE_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="PKGCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path | None = Field(
        default_factory=_default_cache_dir,
        description="Root directory for built local packages (unset disables saving)",
    )
    store_dir: Path | None = Field(
        default=None,
        description="Root directory of the versioned package store",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Locking
    lock_timeout: float | None = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for a package cache lock (None = block)",
    )

    # Reference compiler
    include_patterns: list[str] = Field(
        default_factory=lambda: ["**/*"],
        description="Glob patterns of source files collected into a package",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]

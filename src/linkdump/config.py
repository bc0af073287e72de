# ABOUTME: Application configuration using Pydantic Settings for environment variables
# ABOUTME: Provides type-safe access to storage locations, fetch limits, and logging config

from pathlib import Path
from typing import Literal

from platformdirs import user_data_path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_data_dir() -> Path:
    """Per-user data directory holding the database and blob cache."""
    return user_data_path("linkdump", appauthor=False)


def _default_database_url() -> str:
    return f"sqlite+aiosqlite:///{default_data_dir() / 'db.sqlite3'}"


def _default_cache_dir() -> Path:
    return default_data_dir() / "cache"


class Config(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="LINKDUMP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown environment variables
    )

    # Storage Configuration
    database_url: str = Field(
        default_factory=_default_database_url, description="Database URL for async SQLite operations"
    )
    cache_dir: Path = Field(
        default_factory=_default_cache_dir, description="Directory for the content-addressed blob cache"
    )

    # Fetch Configuration
    request_timeout_seconds: float = Field(default=15.0, description="Timeout for a single link fetch")
    max_redirects: int = Field(default=10, description="Maximum redirects followed per fetch")
    user_agent: str = Field(default="linkdump/0.1.0", description="User-Agent header sent with every fetch")
    fetch_concurrency: int = Field(default=8, ge=1, description="Links enriched concurrently per document")
    max_body_bytes: int = Field(
        default=50 * 1024 * 1024, description="Fetched bodies larger than this are not stored"
    )
    pdf_timeout_seconds: float = Field(default=30.0, description="Deadline for extracting text from one PDF")

    # Logging Configuration
    log_mode: Literal["interactive", "production"] = Field(default="interactive", description="Logging output mode")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging verbosity level"
    )

    log_file: Path | None = Field(default=None, description="Custom log file path (overrides default)")


# Global config instance - lazy loaded when first accessed
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Creates the config on first access, subsequent calls return the same instance.

    Returns:
        Config: The application configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reload_config() -> Config:
    """Reload configuration from environment variables.

    Useful for testing or when environment variables change at runtime.

    Returns:
        Config: A fresh configuration instance
    """
    global _config_instance
    _config_instance = Config()
    return _config_instance

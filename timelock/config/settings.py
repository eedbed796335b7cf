"""
Configuration Management for Time-Locked Savings

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see where data lives on disk, which admin
credentials are in effect and whether the background release
scanner is enabled.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Flat-file persistence and receipt configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIMELOCK_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the record files"
    )
    users_file: str = Field(
        default="users.txt",
        description="Account records file name"
    )
    lockboxes_file: str = Field(
        default="lockboxes.txt",
        description="Lock box records file name"
    )
    release_log_file: str = Field(
        default="release_log.txt",
        description="Release event records file name"
    )
    receipts_dir: Path = Field(
        default=Path("receipts"),
        description="Root directory for per-user transaction logs and receipts"
    )
    write_receipts: bool = Field(
        default=True,
        description="Write transaction logs and receipts to disk"
    )

    @field_validator("users_file", "lockboxes_file", "release_log_file")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """Record files live directly inside data_dir."""
        if not v or Path(v).name != v:
            raise ValueError(f"Expected a bare file name, got {v!r}")
        return v

    @property
    def users_path(self) -> Path:
        return self.data_dir / self.users_file

    @property
    def lockboxes_path(self) -> Path:
        return self.data_dir / self.lockboxes_file

    @property
    def release_log_path(self) -> Path:
        return self.data_dir / self.release_log_file


class AdminSettings(BaseSettings):
    """Administrator credentials."""

    model_config = SettingsConfigDict(
        env_prefix="TIMELOCK_ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    username: str = Field(
        default="admin",
        min_length=1,
        description="Administrator username"
    )
    password: str = Field(
        default="admin123",
        min_length=1,
        description="Administrator password (plaintext)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level for the structured application log"
    )
    log_file: Path = Field(
        default=Path("timelock.log"),
        description="Where the structured application log is written"
    )

    # Release scanning
    release_scan_interval_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Background release scan interval (0 disables the scanner)"
    )

    # Lock box limits
    max_lock_duration_days: int = Field(
        default=3650,
        ge=1,
        description="Longest lock duration accepted from the console"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def background_scan_enabled(self) -> bool:
        return self.release_scan_interval_seconds > 0


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def admin(self) -> AdminSettings:
        return AdminSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an
    additional "<name>_error" entry for each failing section.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "admin", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

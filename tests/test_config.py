"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from timelock.config import AppSettings, StorageSettings, get_settings, validate_all_settings


class TestStorageSettings:
    """Tests for record file locations."""

    def test_defaults(self, monkeypatch):
        """Test the default layout under data/."""
        monkeypatch.delenv("TIMELOCK_STORAGE_DATA_DIR", raising=False)
        settings = StorageSettings()
        assert settings.users_path == Path("data") / "users.txt"
        assert settings.lockboxes_path == Path("data") / "lockboxes.txt"
        assert settings.release_log_path == Path("data") / "release_log.txt"

    def test_env_override(self, monkeypatch, tmp_path):
        """Test that the data directory comes from the environment."""
        monkeypatch.setenv("TIMELOCK_STORAGE_DATA_DIR", str(tmp_path))
        assert StorageSettings().users_path == tmp_path / "users.txt"

    def test_file_names_must_be_bare(self):
        """Test that record file names cannot point elsewhere."""
        with pytest.raises(ValidationError):
            StorageSettings(users_file="../users.txt")


class TestAppSettings:
    """Tests for application settings."""

    def test_log_level_normalized(self):
        """Test that log levels are upper-cased."""
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        """Test that made-up levels are rejected."""
        with pytest.raises(ValidationError):
            AppSettings(log_level="chatty")

    def test_background_scan_toggle(self):
        """Test that a zero interval disables the scanner."""
        assert not AppSettings(release_scan_interval_seconds=0).background_scan_enabled
        assert AppSettings(release_scan_interval_seconds=30).background_scan_enabled

    def test_negative_interval(self):
        """Test that a negative interval is rejected."""
        with pytest.raises(ValidationError):
            AppSettings(release_scan_interval_seconds=-1)


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_all_sections_valid(self, monkeypatch):
        """Test the default configuration passes."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results == {"storage": True, "admin": True, "app": True}

    def test_bad_section_reported(self, monkeypatch):
        """Test that a broken section is reported with its error."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["app"] is False
        assert "app_error" in results

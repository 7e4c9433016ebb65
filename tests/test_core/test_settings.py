"""
Tests for Configuration Module

Tests for firesim/core/config.py
"""

import pytest
from pydantic import ValidationError

from firesim.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self, monkeypatch):
        """Test default settings without environment overrides."""
        for key in ("FIRESIM_PORT", "FIRESIM_IMAGE_MODEL", "FIRESIM_MAX_RETRIES"):
            monkeypatch.delenv(key, raising=False)
        settings = Settings(_env_file=None)

        assert settings.port == 8000
        assert settings.image_model == "gemini-3-pro-image-preview"
        assert settings.max_concurrent_images == 3
        assert settings.max_retries == 2
        assert settings.job_store_dir is None

    def test_env_prefix(self, monkeypatch):
        """Test that FIRESIM_ environment variables are read."""
        monkeypatch.setenv("FIRESIM_PORT", "9001")
        monkeypatch.setenv("FIRESIM_MAX_CONCURRENT_IMAGES", "5")

        settings = Settings(_env_file=None)

        assert settings.port == 9001
        assert settings.max_concurrent_images == 5

    def test_env_file(self, temp_dir, monkeypatch):
        """Test loading values from a .env file."""
        monkeypatch.delenv("FIRESIM_GEMINI_API_KEY", raising=False)
        env_file = temp_dir / ".env"
        env_file.write_text("FIRESIM_GEMINI_API_KEY=from-file\n", encoding="utf-8")

        settings = Settings(_env_file=env_file)

        assert settings.gemini_api_key == "from-file"

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_concurrency_bounds(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_concurrent_images=0)


class TestGetSettings:
    """Tests for the cached settings accessor."""

    def test_cached_instance(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

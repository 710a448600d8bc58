"""
Unit tests for Pydantic Settings configuration.

Tests settings loading and validation.
"""

import pytest

from app.config.settings import Settings


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_loads_from_env(self):
        """Settings should load from environment variables."""
        from app.config.settings import settings

        # Set by the test configuration
        assert settings.stripe_webhook_secret == "whsec_test_secret"
        assert settings.supabase_jwt_secret is not None

    def test_settings_has_defaults(self):
        """Settings should have sensible defaults."""
        s = Settings(_env_file=None)

        assert s.gemini_model == "gemini-2.5-flash"
        assert s.webhook_processing_mode == "background"
        assert s.stripe_webhook_tolerance == 300
        assert s.app_url == "http://localhost:3000"

    def test_gemini_key_alias(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")

        assert Settings(_env_file=None).google_api_key == "gemini-key"

    def test_processing_mode_validated(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_PROCESSING_MODE", "whenever")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_is_production_property(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        s = Settings(_env_file=None)

        assert s.is_production is True
        assert s.is_development is False

    def test_allowed_origins_includes_localhost(self):
        """allowed_origins should include the local web app."""
        from app.config.settings import settings

        assert "http://localhost:3000" in settings.allowed_origins

"""
Tests for settings loading and validation.
"""

import pytest
from pydantic import ValidationError

from receipt_engine.config import Settings, get_settings, reload_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OCR_API_KEY", raising=False)
        settings = Settings()

        assert settings.ocr_api_url == "https://api.ocr.space/parse/image"
        assert settings.ocr_timeout_seconds == 90.0
        assert settings.ocr_primary_engine == 2
        assert settings.ocr_fallback_engine == 1
        assert settings.auto_approve_threshold == 85
        assert settings.max_file_size_bytes == 10 * 1024 * 1024
        assert settings.pdf_support
        assert not settings.ocr_configured

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("OCR_API_KEY", "abc")
        monkeypatch.setenv("AUTO_APPROVE_THRESHOLD", "70")
        monkeypatch.setenv("REQUIRE_TRANSACTION_ID", "true")
        settings = Settings()

        assert settings.ocr_configured
        assert settings.auto_approve_threshold == 70
        assert settings.require_transaction_id

    def test_blank_key_is_not_configured(self):
        assert not Settings(ocr_api_key="   ").ocr_configured

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("log_level", "LOUD"),
            ("environment", "moon"),
            ("ocr_primary_engine", 7),
            ("auto_approve_threshold", 101),
            ("ocr_timeout_seconds", 0),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})


def test_reload_settings(monkeypatch):
    monkeypatch.setenv("OCR_LANGUAGE", "msa")
    settings = reload_settings()

    assert settings.ocr_language == "msa"
    assert get_settings() is settings

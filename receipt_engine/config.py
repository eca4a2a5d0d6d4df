"""
Configuration management module for the receipt validation engine.
Loads and validates environment variables.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from receipt_engine.constants import (
    DEFAULT_AUTO_APPROVE_THRESHOLD,
    DEFAULT_OCR_API_URL,
    DEFAULT_OCR_TIMEOUT_SECONDS,
    FALLBACK_OCR_ENGINE,
    MAX_FILE_SIZE_BYTES,
    PRIMARY_OCR_ENGINE,
)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OCR provider configuration
    ocr_api_key: str = Field(
        default="", description="OCR provider API key; empty disables validation"
    )
    ocr_api_url: str = Field(
        default=DEFAULT_OCR_API_URL, description="OCR provider parse endpoint"
    )
    ocr_language: str = Field(default="eng", description="OCR recognition language")
    ocr_timeout_seconds: float = Field(
        default=DEFAULT_OCR_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for each OCR provider call",
    )
    ocr_primary_engine: int = Field(
        default=PRIMARY_OCR_ENGINE, description="Engine tried first"
    )
    ocr_fallback_engine: int = Field(
        default=FALLBACK_OCR_ENGINE, description="Engine tried once on failure"
    )

    # File admissibility
    max_file_size_bytes: int = Field(
        default=MAX_FILE_SIZE_BYTES, gt=0, description="Largest accepted upload"
    )
    pdf_support: bool = Field(default=True, description="Accept PDF receipts")

    # Approval policy
    auto_approve_threshold: int = Field(
        default=DEFAULT_AUTO_APPROVE_THRESHOLD,
        ge=0,
        le=100,
        description="Confidence needed for auto-approval; 0 disables it",
    )
    require_transaction_id: bool = Field(
        default=False,
        description="Require a transaction reference before auto-approving",
    )
    auto_extract_transaction_id: bool = Field(
        default=True, description="Extract transaction references from receipts"
    )

    # Application configuration
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(default="production", description="Environment name")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the expected values."""
        valid_envs = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v_lower

    @field_validator("ocr_primary_engine", "ocr_fallback_engine")
    @classmethod
    def validate_engine(cls, v: int) -> int:
        """OCR.space exposes engines 1, 2 and 3."""
        if v not in (1, 2, 3):
            raise ValueError("OCR engine must be 1, 2 or 3")
        return v

    @property
    def ocr_configured(self) -> bool:
        return bool(self.ocr_api_key.strip())


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.
    Creates the instance on first call.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment.
    Useful for testing or configuration changes.
    """
    global _settings
    _settings = Settings()
    return _settings

"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

External extraction providers are selected by the presence of their credentials, read once at
process start. A provider without an API key is never attempted.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_api_base: str = Field(default="https://api.openai.com/v1", alias="OPENAI_API_BASE")

    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    gemini_model: str = Field(default="gemini-2.0-flash-001", alias="GEMINI_MODEL")
    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_API_BASE",
    )

    extraction_timeout_s: float = Field(default=10.0, alias="EXTRACTION_TIMEOUT_S")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("openai_api_key", "gemini_api_key", "telegram_bot_token")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        """Treat an empty variable (`OPENAI_API_KEY=`) as not configured."""

        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("extraction_timeout_s")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Provider calls must always be time-bounded."""

        if value <= 0:
            raise ValueError("EXTRACTION_TIMEOUT_S must be > 0")
        return value


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        # Raising here is fine: caller can decide how to handle startup errors.
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc

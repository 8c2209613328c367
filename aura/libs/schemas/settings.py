"""Application settings management leveraging pydantic v2."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if os.getenv("ENV", "development") in {"development", "dev", "local"}:
    from dotenv import load_dotenv

    load_dotenv(override=False)


class AppSettings(BaseSettings):
    """Typed configuration sourced from environment variables."""

    app_name: str = Field(
        default="Aura",
        validation_alias=AliasChoices("APP_NAME", "AURA_APP_NAME"),
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "AURA_ENVIRONMENT"),
    )
    default_user_id: str = Field(
        default="local-user",
        validation_alias=AliasChoices("DEFAULT_USER_ID", "AURA_DEFAULT_USER_ID"),
    )
    default_user_name: str = Field(
        default="Viajante",
        validation_alias=AliasChoices("DEFAULT_USER_NAME", "AURA_DEFAULT_USER_NAME"),
    )
    # When unset the in-memory report repository is used.
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "AURA_DATABASE_URL"),
    )
    openrouter_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "AURA_OPENROUTER_API_KEY"),
    )
    llm_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_BASE_URL", "AURA_LLM_BASE_URL"),
    )
    model_analysis: str = Field(
        default="google/gemini-2.5-pro",
        validation_alias=AliasChoices("MODEL_ANALYSIS", "AURA_MODEL_ANALYSIS"),
    )
    model_chat: str = Field(
        default="google/gemini-2.5-flash",
        validation_alias=AliasChoices("MODEL_CHAT", "AURA_MODEL_CHAT"),
    )
    model_image: str = Field(
        default="google/gemini-2.5-flash-image",
        validation_alias=AliasChoices("MODEL_IMAGE", "AURA_MODEL_IMAGE"),
    )
    model_speech: str = Field(
        default="gpt-4o-mini-tts",
        validation_alias=AliasChoices("MODEL_SPEECH", "AURA_MODEL_SPEECH"),
    )
    model_transcribe: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("MODEL_TRANSCRIBE", "AURA_MODEL_TRANSCRIBE"),
    )
    inference_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("INFERENCE_TIMEOUT", "AURA_INFERENCE_TIMEOUT"),
    )
    inference_max_attempts: int = Field(
        default=3,
        validation_alias=AliasChoices("INFERENCE_MAX_ATTEMPTS", "AURA_INFERENCE_MAX_ATTEMPTS"),
    )
    inference_backoff_seconds: float = Field(
        default=1.0,
        validation_alias=AliasChoices("INFERENCE_BACKOFF_SECONDS", "AURA_INFERENCE_BACKOFF_SECONDS"),
    )
    inference_backoff_multiplier: float = Field(
        default=2.0,
        validation_alias=AliasChoices(
            "INFERENCE_BACKOFF_MULTIPLIER", "AURA_INFERENCE_BACKOFF_MULTIPLIER"
        ),
    )
    weather_base_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        validation_alias=AliasChoices("WEATHER_BASE_URL", "AURA_WEATHER_BASE_URL"),
    )
    weather_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("WEATHER_TIMEOUT", "AURA_WEATHER_TIMEOUT"),
    )
    media_dir: str = Field(
        default="media",
        validation_alias=AliasChoices("MEDIA_DIR", "AURA_MEDIA_DIR"),
    )
    auto_reconcile_on_reconnect: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "AUTO_RECONCILE_ON_RECONNECT", "AURA_AUTO_RECONCILE_ON_RECONNECT"
        ),
    )
    # IANA zone used to bucket entries by local day/hour; None keeps stored offsets.
    timezone: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TIMEZONE", "AURA_TIMEZONE"),
    )

    model_config = SettingsConfigDict(
        env_file=(".env", "aura/.env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load environment variables and return a cached settings instance."""

    return AppSettings()


__all__ = ["AppSettings", "get_settings"]

"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    SCHEMA_PATH: str = Field(default="config/flows/solar_onboarding.json")

    NAME_FALLBACK: str = "there"
    DEFAULT_COMPLETION_MESSAGE: str = "Thank you! Your information has been collected."
    MAX_SESSION_EVENTS: int = Field(default=200, ge=1)

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()

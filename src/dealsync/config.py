"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Deal generation
    MAX_CONCURRENT_LICENSES: int = 8
    DRY_RUN: bool = True  # Only the in-memory CRM is available; False refuses to run

    # Data shift audit
    LATE_TRANSACTION_THRESHOLD_DAYS: int = 30

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.production


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()

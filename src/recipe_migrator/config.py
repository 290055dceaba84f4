"""
Recipe Migrator - Configuration and settings.

All runtime configuration comes from the environment (or a local .env file).
Credentials are consumed as opaque strings and never echoed back by the web
layer.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Only the OpenAI key is needed for extraction; the Tandoor fields are only
    read when a recipe is uploaded.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI (absence is reported per item as an extraction error)
    openai_api_key: str | None = None
    extraction_model: str = "gpt-4.1"
    extraction_temperature: float = 0.2
    extraction_concurrency: int = 1  # Items in flight per batch run
    extraction_timeout_seconds: float | None = None  # None = wait indefinitely

    # Tandoor
    tandoor_api_key: str | None = None
    tandoor_url: str = "http://localhost:8080"
    tandoor_timeout_seconds: float | None = None

    # Application
    migrator_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Prompt logging
    # MIGRATOR_LOG_PROMPTS=1 - log extraction calls to local files (dev only)
    migrator_log_prompts: bool = False

    @property
    def is_development(self) -> bool:
        return self.migrator_env == "development"

    @property
    def is_production(self) -> bool:
        return self.migrator_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience singleton - lazy loaded
class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

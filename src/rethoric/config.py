"""Configuration management using pydantic-settings."""

import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Rethoric"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./rethoric.db"

    # LLM Provider Selection
    LLM_PROVIDER: str = "claude"  # 'ollama', 'claude', or empty for auto-select
    LLM_TIMEOUT: float = 60.0
    LLM_MAX_TOKENS: int = 1024

    # Anthropic (Claude)
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"

    # Ollama (local LLM)
    OLLAMA_BASE_URL: str = "http://ollama:11434"
    OLLAMA_LLM_MODEL: str = "llama3.1:8b"

    # Mentor / response generation
    MENTOR_NAME: str = "ReasoningCoach"
    GENERATION_MAX_ATTEMPTS: int = 3
    GENERATION_BASE_DELAY: float = 1.0  # seconds, doubled on every retry

    # Identity provider
    CLERK_WEBHOOK_SECRET: str = ""  # whsec_...
    AUTH_SUBJECT_HEADER: str = "X-Auth-Subject"  # set by the auth proxy

    @model_validator(mode="after")
    def check_webhook_settings(self) -> "Settings":
        """Warn about missing webhook configuration."""
        if not self.DEBUG and not self.CLERK_WEBHOOK_SECRET:
            logging.warning(
                "CLERK_WEBHOOK_SECRET is not set; user provisioning webhooks will be rejected"
            )
        return self


settings = Settings()

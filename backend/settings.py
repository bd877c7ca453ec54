"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_KEY: str = ""
    AI_PROVIDER: str = ""
    OPENROUTER_MODEL: str = ""

    DATABASE_URL: str = "sqlite:///data/bookmarks.db"
    INIT_RUN: bool = False
    DEFAULT_PARENT_ID: str = "1"

    ORGANIZE_DELAY_SECONDS: float = 1.0
    CLASSIFIER_MAX_TOKENS: int = 300
    CLASSIFIER_TEMPERATURE: float = 0.2
    CLASSIFIER_MAX_DEPTH: int = 3
    REQUEST_TIMEOUT_SECONDS: float = 60.0

    COPILOT_TOKEN_URL: str = "https://api.github.com/copilot_internal/v2/token"
    OPENROUTER_MODELS_URL: str = "https://openrouter.ai/api/v1/models"
    OPENROUTER_MODEL_CACHE_SECONDS: int = 3600

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


S = Settings()

"""
Configuration settings for the TinyFlow engine.
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application
    APP_NAME: str = "TinyFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]  # Editor origins allowed to call the API

    # Workflow Engine
    MAX_STEPS: int = 1000  # Node executions allowed per run
    DEFAULT_MAX_CONCURRENCY: int = 10  # batchForEach chunk size
    DEFAULT_RETRY_DELAY_MS: int = 0

    # Logging
    LOG_LEVEL: str = "INFO"


# Global settings instance
settings = Settings()

"""Application configuration and feature flags."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Script Guard"
    debug: bool = False

    # Logging
    log_level: str = "info"
    log_json: bool = False

    # Optional LLM collaborator
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.4
    llm_max_tokens: int = 4096
    llm_timeout_seconds: float = 60.0

    # Rule storage keys
    rules_storage_key: str = "tiktok_rules"
    metadata_storage_key: str = "tiktok_rules_metadata"

    # Paths
    data_dir: str = "data"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def llm_available() -> bool:
    """Check if an LLM collaborator can be constructed."""
    return bool(get_settings().openai_api_key)

# ========================================
# config.py - Application configuration
# ========================================

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---------- LLM Configuration (Gemini) ----------------------------- #
    llm_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("llm_api_key", "gemini_api_key", "api_key"),
    )
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 6000

    # ---------- Interview Settings ------------------------------------- #
    default_language: str = "en"
    question_count: int = 5

    # ---------- History Storage ---------------------------------------- #
    history_backend: str = "file"  # file | redis
    history_dir: Path = Path.home() / ".prepiq"
    history_key: str = "prepiq_interview_history"

    # ---------- Redis -------------------------------------------------- #
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""

    # ---------- Logging ------------------------------------------------ #
    log_level: str = "INFO"
    log_format: str = "console"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

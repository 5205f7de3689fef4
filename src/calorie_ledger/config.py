"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_base_url: str | None = None
    estimation_model: str = "openai/gpt-4o-mini"
    estimation_timeout_seconds: float = 30.0
    estimation_max_attempts: int = 3
    estimation_initial_delay_seconds: float = 1.0
    estimation_backoff_factor: float = 2.0
    estimation_max_delay_seconds: float = 10.0
    estimation_rate_limit: int = 10
    estimation_rate_window_seconds: int = 60
    rate_limit_sweep_seconds: int = 60
    default_daily_goal: int = 2000
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

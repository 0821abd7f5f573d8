from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Rapport CRM API"
    environment: str = "dev"
    api_prefix: str = "/v1"

    database_dsn: str = "sqlite:///./rapport.db"
    db_pool_size: int = Field(default=20, ge=1, le=200)
    db_max_overflow: int = Field(default=40, ge=0, le=400)
    db_pool_timeout_seconds: int = Field(default=60, ge=1, le=600)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86400)

    redis_url: str = "redis://redis:6379/0"
    queue_mode: str = "redis"
    queue_name: str = "default"
    queue_retry_max: int = Field(default=2, ge=0, le=10)
    queue_retry_interval_seconds: int = Field(default=60, ge=5, le=3600)

    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    admin_secret: str = ""

    log_level: str = "INFO"
    log_format: str = "text"

    reply_timer_backend: str = "rq"
    reply_delay_min_seconds: int = Field(default=30, ge=0, le=86400)
    reply_delay_max_seconds: int = Field(default=300, ge=0, le=86400)
    reply_recovery_delay_min_seconds: int = Field(default=10, ge=0, le=3600)
    reply_recovery_delay_max_seconds: int = Field(default=70, ge=0, le=3600)
    recover_replies_on_startup: bool = True
    no_response_after_days: int = Field(default=7, ge=1, le=365)

    engagement_window_days: int = Field(default=30, ge=1, le=365)
    contact_recent_interactions_cap: int = Field(default=5, ge=1, le=100)
    analytics_backfill_days: int = Field(default=30, ge=1, le=366)

    strength_strong_max_days: int = Field(default=5, ge=0, le=365)
    strength_medium_max_days: int = Field(default=15, ge=0, le=365)
    strength_weak_max_days: int = Field(default=45, ge=0, le=3650)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

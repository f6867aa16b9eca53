from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./gymdesk.db"
    timezone: str = "America/La_Paz"

    # Tracing
    tracing_exporter: Literal["otlp", "console", "none"] = "none"

    # Internal API security
    sweep_api_key: str = ""

    # Expiration sweep
    expiration_sweep_enabled: bool = True
    expiration_sweep_lookahead_days: int = 8

    # Job scheduler
    job_scheduler_enabled: bool = True
    job_schedule_path: str = "config/schedules.toml"

    # Check-in guard
    checkin_warning_days: int = 7

    # Telegram messaging
    telegram_bots_enabled: bool = False
    telegram_api_base_url: str = "https://api.telegram.org"
    telegram_timeout_seconds: float = 10.0
    telegram_parse_mode: str = "HTML"

    @field_validator("expiration_sweep_lookahead_days", "checkin_warning_days")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be zero or positive")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()

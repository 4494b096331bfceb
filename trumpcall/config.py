"""Runtime configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TRUMPCALL_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./trumpcall.db"

    # Pause after dealing before bidding opens, and after a round before the next deal.
    deal_settle_seconds: float = 3.0
    round_end_settle_seconds: float = 3.0

    # Backoff for a deferred transition whose write failed.
    timer_retry_seconds: float = 1.0
    timer_retry_max_seconds: float = 30.0

    room_code_length: int = 6
    room_code_attempts: int = 20

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache()
def get_settings() -> Settings:
    return Settings()

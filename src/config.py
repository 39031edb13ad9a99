from __future__ import annotations

from functools import cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    db_file: str = "crypto_tracker.db"
    progress_every: int = Field(default=10, gt=0)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CRYPTO_TRACKER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@cache
def config() -> AppSettings:
    return AppSettings()

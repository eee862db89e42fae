# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables. The :func:`get_settings` helper merges the two sources
and caches the result.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./pos.db"
    redis_url: str = "redis://localhost:6379/0"
    secret_key: str = "change-me"
    access_token_expire_minutes: int = 720
    business_timezone: str = "UTC"
    # Business days run from this hour to the same hour on the next day.
    day_cutover_hour: int = 6
    dashboard_top_n: int = 10
    dashboard_cache_ttl: int = 30
    order_number_prefix: str = "ORD"
    status_change_retries: int = 3
    log_level: str = "INFO"
    error_dsn: str | None = None

    @field_validator("day_cutover_hour")
    @classmethod
    def _check_cutover(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("day_cutover_hour must be between 0 and 23")
        return value

    @field_validator("dashboard_top_n", "status_change_retries")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    The configuration is read from ``config.json`` located alongside this file
    when present and fed into :class:`Settings`. Environment variables override
    any values from the JSON file. The result is cached to prevent repeated
    disk reads.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): v
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    # Environment variables override values from the JSON file.
    return Settings(**merged)

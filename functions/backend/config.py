"""
Configuration and settings shared by the functions and the HTTP service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    dispatch_triggers_in_process: bool = Field(default=True)

    # Document store (Postgres expected when set; Firestore otherwise)
    database_url: Optional[str] = Field(default=None)

    # Generation locks (Redis)
    redis_url: Optional[str] = Field(default=None)
    generation_lock_timeout_seconds: float = Field(default=120.0)
    generation_lock_wait_seconds: float = Field(default=30.0)

    # Email
    sendgrid_api_key: Optional[str] = Field(default=None)
    sender_email: str = Field(default="orders@example.com")
    company_name: Optional[str] = Field(default=None)

    # Day boundaries for ordering suggestions
    business_timezone: str = Field(default="UTC")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

"""
Application configuration using Pydantic Settings.

Centralizes all configuration with environment variable support.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/commitments.db"

    # Scheduling: every window and calendar date is computed in this zone
    timezone: str = "America/New_York"
    day_boundary_hour: int = 4

    # Proof verification
    llm_model: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @field_validator("day_boundary_hour")
    @classmethod
    def boundary_hour_in_range(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("day_boundary_hour must be between 0 and 23")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

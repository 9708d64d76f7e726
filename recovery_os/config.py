"""Configuration management for RecoveryOS."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    core_database_url: str = Field(
        default="sqlite+aiosqlite:///./data/recovery.db",
        description="Async SQLAlchemy DSN for patients, protocols and task records",
    )

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    api_key: str = Field(
        default="",
        description="API key for authenticating requests",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins",
    )

    # Recovery timeline
    clinic_timezone: str = Field(
        default="UTC",
        description="IANA timezone in which a patient's 'today' is evaluated",
    )
    timeline_start_day: int = Field(
        default=-45,
        description="First recovery day shown in timelines (enrollment)",
    )
    timeline_end_day: int = Field(
        default=200,
        description="Last recovery day shown in timelines",
    )
    phase_granularity: Literal["standard", "fine"] = Field(
        default="standard",
        description="Default phase table: 'standard' (0-7 immediate) or 'fine' (0-3 immediate)",
    )
    surgery_phase_granularity: dict[str, Literal["standard", "fine"]] = Field(
        default={},
        description='Phase table per surgery type, e.g. {"TKA": "fine"}',
    )

    # Debug
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (exposes error details in responses)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def has_api_key(self) -> bool:
        """Check if a shared API key is configured."""
        return bool(self.api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Game News Relay"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (console renderer otherwise)",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./gamenews.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # Scheduler
    poll_interval_minutes: int = Field(
        default=30,
        ge=1,
        description="Interval between polling ticks across all publishers",
    )
    run_initial_check: bool = Field(
        default=True,
        description="Run one tick as soon as the scheduler starts",
    )
    max_concurrent_fetches: int = Field(default=4, ge=1)
    max_concurrent_deliveries: int = Field(default=5, ge=1)

    # Publishers
    enabled_publishers: list[str] = Field(
        default=["lol", "valorant", "fortnite", "minecraft", "cs2"],
    )
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    items_per_fetch: int = Field(default=5, ge=1, le=50)
    user_agent: str = Field(default="GameNewsRelay/1.0")

    # API Keys (all optional)
    fortnite_api_key: str | None = Field(default=None)
    steam_cs2_app_id: str = Field(default="730")

    # Destination platform
    discord_bot_token: str | None = Field(default=None)
    discord_api_base: str = Field(default="https://discord.com/api/v10")

    # Rendering
    body_max_length: int = Field(default=300, ge=10)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

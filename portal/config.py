"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./portal.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        default="change-me-change-me-change-me-change-me",
        description="Secret key used to verify JWT access tokens",
        min_length=1,
    )
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used for notification and statistics timestamps",
    )
    heartbeat_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between liveness heartbeats on joined channels",
        gt=0,
    )
    recent_registration_days: int = Field(
        default=7,
        description="Trailing window, in days, counted as recent registrations",
        gt=0,
    )
    admin_channel_name: str = Field(
        default="admin-broadcast",
        description="Name of the broadcast channel every administrator listens on",
        min_length=1,
    )
    member_table: str = Field(
        default="users",
        description="Table holding member records",
        min_length=1,
    )
    administrator_table: str = Field(
        default="pastors",
        description="Table holding administrator records",
        min_length=1,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_channel_name(self) -> "Settings":
        if self.admin_channel_name.startswith("user-"):
            raise ValueError("ADMIN_CHANNEL_NAME must not use the personal 'user-' prefix")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]

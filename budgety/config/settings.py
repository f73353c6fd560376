"""
Configuration Management for Budgety

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so every external dependency
(database, session cookie, scheduler clock) is visible in one place and
validated at startup.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///budgety.db",
        description="SQLAlchemy database URL (PostgreSQL in production)"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )


class AuthSettings(BaseSettings):
    """Session lookup configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    session_cookie_name: str = Field(
        default="budgety.session_token",
        description="Cookie carrying the session token when no bearer header is sent"
    )
    dev_session_ttl_days: int = Field(
        default=30,
        ge=1,
        description="Lifetime of sessions issued by the development CLI"
    )


class SchedulerSettings(BaseSettings):
    """Daily recurring-expense job configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Run the daily tick inside the API process"
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone whose midnight triggers the tick"
    )
    job_name: str = Field(
        default="recurring-expenses",
        description="Lock key shared by every instance running the tick"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (console log rendering)"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON lines (console rendering when False or in debug mode)"
    )

    # Pagination
    default_page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Page size used when a list request gives none"
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Largest page size a client may request"
    )

    # Families
    default_currency: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="Currency given to new families"
    )
    invite_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="How long an invite code stays valid"
    )

    # Reports
    member_top_categories: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Categories listed per member in the member-spending report"
    )

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def scheduler(self) -> SchedulerSettings:
        return SchedulerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Optional[bool | str]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus an
    ``<name>_error`` entry for every group that failed to load.
    Useful for startup checks.
    """
    results: dict[str, Optional[bool | str]] = {}
    settings = get_settings()

    for name in ("database", "auth", "scheduler", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

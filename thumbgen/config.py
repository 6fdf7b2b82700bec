"""Pydantic settings for application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobApiSettings(BaseSettings):
    """Remote job service (training / generation) settings."""

    model_config = SettingsConfigDict(env_prefix="JOB_API_")

    base_url: str = Field(
        default="https://yt-thumbnail-bkend.onrender.com",
        description="Base URL of the remote job service",
    )
    origin: str = Field(
        default="http://localhost:5173",
        description="Value sent in the Origin header of every request",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout",
    )


class PollingSettings(BaseSettings):
    """Job status polling settings."""

    model_config = SettingsConfigDict(env_prefix="POLL_")

    interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between status checks while a job is running",
    )
    retry_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Fixed delay before retrying a failed status check",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Status check attempts per poll before the error is surfaced",
    )
    ingest_settle_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between result ingestion and loading the stored images",
    )


class DatabaseSettings(BaseSettings):
    """Record store connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(
        default="",
        description="SQLAlchemy async database URL",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Connection pool size",
    )
    max_overflow: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Max connections beyond pool size",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for logs",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
    )

    service_name: str = Field(
        default="thumbgen",
        description="Service name for logging",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    job_api: JobApiSettings = Field(default_factory=JobApiSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def refresh_settings() -> Settings:
    """Clear settings cache and return fresh settings.

    Returns:
        Fresh application settings.
    """
    get_settings.cache_clear()
    return get_settings()

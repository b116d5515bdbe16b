"""Application configuration settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Signal store database configuration."""

    url: str = Field(default="sqlite:///./data/remindersync.db")

    model_config = SettingsConfigDict(env_prefix="DB_")


class SchedulingSettings(BaseSettings):
    """Periodic sync scheduling configuration."""

    job_name: str = Field(default="ReminderSync")
    default_interval_minutes: int = Field(default=30)
    min_interval_minutes: int = Field(default=15)

    # Night hours, local time: start inclusive, end exclusive
    blackout_start_hour: int = Field(default=20, ge=0, le=23)
    blackout_end_hour: int = Field(default=9, ge=0, le=23)

    misfire_grace_seconds: int = Field(default=300)
    max_workers: int = Field(default=2)

    # Retry backoff applied by the host engine
    backoff_initial_seconds: int = Field(default=30)
    backoff_multiplier: float = Field(default=2.0)
    backoff_max_seconds: int = Field(default=5 * 60 * 60)
    max_retry_attempts: Optional[int] = Field(default=None)

    # Execution constraints
    network_probe_host: str = Field(default="1.1.1.1")
    network_probe_port: int = Field(default=53)
    network_probe_timeout: float = Field(default=3.0)
    storage_path: str = Field(default="/")
    min_free_storage_mb: int = Field(default=100)

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")


class ServerSettings(BaseSettings):
    """HTTP bridge server configuration."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class BootSettings(BaseSettings):
    """Boot-time restore configuration."""

    restore_on_startup: bool = Field(default=True)

    model_config = SettingsConfigDict(env_prefix="BOOT_")


class ConsumerSettings(BaseSettings):
    """In-process consumer of the pending sync signal."""

    # Only takes effect when the application is given a sync handler
    poll_enabled: bool = Field(default=True)
    poll_interval_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="CONSUMER_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="json")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="LOG_")


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="Reminder Sync Scheduler")
    version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    boot: BootSettings = Field(default_factory=BootSettings)
    consumer: ConsumerSettings = Field(default_factory=ConsumerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings

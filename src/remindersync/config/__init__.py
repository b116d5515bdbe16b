"""Configuration package for the reminder sync scheduler."""

from .settings import (
    DatabaseSettings,
    SchedulingSettings,
    ServerSettings,
    BootSettings,
    ConsumerSettings,
    LoggingSettings,
    AppSettings,
    get_settings
)

from .schema import (
    MIN_PERIODIC_INTERVAL_MINUTES,
    ConfigurationError,
    SyncConstraints,
    SyncJobConfig,
    clamp_interval
)

__all__ = [
    "DatabaseSettings",
    "SchedulingSettings",
    "ServerSettings",
    "BootSettings",
    "ConsumerSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",

    "MIN_PERIODIC_INTERVAL_MINUTES",
    "ConfigurationError",
    "SyncConstraints",
    "SyncJobConfig",
    "clamp_interval"
]

"""Configuration schema for the periodic sync job."""

from pydantic import BaseModel, Field, field_validator


# Shortest period the host engine accepts for periodic work
MIN_PERIODIC_INTERVAL_MINUTES = 15


class ConfigurationError(Exception):
    """Raised when settings cannot produce a working scheduler."""


def clamp_interval(interval_minutes: int, minimum: int = MIN_PERIODIC_INTERVAL_MINUTES) -> int:
    """Raise an interval up to the supported minimum."""
    return max(int(interval_minutes), minimum)


class SyncConstraints(BaseModel):
    """Preconditions the host engine must satisfy before running the job."""

    require_network: bool = Field(default=True, description="Require network connectivity")
    require_charging: bool = Field(default=False, description="Require the device to be charging")
    require_device_idle: bool = Field(default=False, description="Require the device to be idle")
    require_storage_not_low: bool = Field(default=True, description="Require storage headroom")
    # Low battery is tolerated; power-saving deferral is left to the host
    require_battery_not_low: bool = Field(default=False, description="Require battery not low")


class SyncJobConfig(BaseModel):
    """Configuration of the uniquely named recurring sync job."""

    job_name: str = Field(..., min_length=1, description="Unique name of the periodic job")
    interval_minutes: int = Field(..., description="Repeat interval in minutes")
    constraints: SyncConstraints = Field(default_factory=SyncConstraints)

    @field_validator('interval_minutes')
    @classmethod
    def validate_interval(cls, v):
        if v < MIN_PERIODIC_INTERVAL_MINUTES:
            raise ValueError(
                f"Interval must be at least {MIN_PERIODIC_INTERVAL_MINUTES} minutes"
            )
        return v

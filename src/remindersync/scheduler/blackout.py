"""Night-hours blackout window during which syncs are suppressed."""

from datetime import datetime


DEFAULT_BLACKOUT_START_HOUR = 20
DEFAULT_BLACKOUT_END_HOUR = 9


class BlackoutWindow:
    """Recurring time-of-day window during which sync execution is suppressed.

    The window covers ``start_hour <= hour < end_hour`` in local time. When
    ``start_hour`` is greater than ``end_hour`` it wraps around midnight, so the
    default 20/9 window suppresses ``hour >= 20 or hour < 9``. Equal hours
    disable the window.
    """

    def __init__(
        self,
        start_hour: int = DEFAULT_BLACKOUT_START_HOUR,
        end_hour: int = DEFAULT_BLACKOUT_END_HOUR
    ):
        for hour in (start_hour, end_hour):
            if not 0 <= hour <= 23:
                raise ValueError(f"Blackout hour must be within 0-23, got {hour}")
        self.start_hour = start_hour
        self.end_hour = end_hour

    def is_suppressed(self, now: datetime) -> bool:
        """Return True if ``now`` falls inside the blackout window."""
        if now.tzinfo is not None:
            now = now.astimezone()
        return self.is_hour_suppressed(now.hour)

    def is_hour_suppressed(self, hour: int) -> bool:
        if self.start_hour == self.end_hour:
            return False
        if self.start_hour > self.end_hour:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour

    def describe(self) -> str:
        return f"{self.start_hour:02d}:00-{self.end_hour:02d}:00"

    def __repr__(self):
        return f"<BlackoutWindow({self.describe()})>"

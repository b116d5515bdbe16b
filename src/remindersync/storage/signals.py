"""Typed access to the persisted sync signal and preferences."""

from dataclasses import dataclass
from typing import Optional

from .store import StateStore


# Preference keys
PENDING_SYNC = "pending_sync"
SYNC_TRIGGERED_AT = "sync_triggered_at"
PERIODIC_SYNC_ENABLED = "periodic_sync_enabled"
LAST_STATUS = "last_status"
LAST_SYNC_COUNT = "last_sync_count"
LAST_OUTCOME_AT = "last_outcome_at"
AUTO_SYNC_ENABLED = "auto_sync_enabled"
SYNC_INTERVAL = "sync_interval"


@dataclass(frozen=True)
class SyncSignal:
    """Durable "a sync attempt is due" flag.

    ``triggered_at_epoch_millis`` is only meaningful while ``pending_sync`` is
    set; clearing keeps the last timestamp.
    """

    pending_sync: bool
    triggered_at_epoch_millis: int


@dataclass(frozen=True)
class SyncOutcome:
    """Last outcome reported by a sync attempt."""

    status: str
    sync_count: int
    timestamp_epoch_millis: int


class SignalStore:
    """Signal, outcome and preference accessors over a :class:`StateStore`."""

    def __init__(self, store: StateStore):
        self.store = store

    # Sync signal

    def read_signal(self) -> SyncSignal:
        return SyncSignal(
            pending_sync=self.store.get_bool(PENDING_SYNC, False),
            triggered_at_epoch_millis=self.store.get_int(SYNC_TRIGGERED_AT, 0),
        )

    def mark_pending(self, triggered_at_epoch_millis: int) -> None:
        self.store.set_many({
            PENDING_SYNC: True,
            SYNC_TRIGGERED_AT: int(triggered_at_epoch_millis),
        })

    def clear_pending(self) -> None:
        self.store.set(PENDING_SYNC, False)

    # Outcome of the last attempt

    def record_outcome(self, status: str, sync_count: int, timestamp_epoch_millis: int) -> None:
        self.store.set_many({
            LAST_STATUS: status,
            LAST_SYNC_COUNT: int(sync_count),
            LAST_OUTCOME_AT: int(timestamp_epoch_millis),
        })

    def last_outcome(self) -> Optional[SyncOutcome]:
        status = self.store.get_str(LAST_STATUS)
        if status is None:
            return None
        return SyncOutcome(
            status=status,
            sync_count=self.store.get_int(LAST_SYNC_COUNT, 0),
            timestamp_epoch_millis=self.store.get_int(LAST_OUTCOME_AT, 0),
        )

    # Job and application preferences

    def is_periodic_sync_enabled(self) -> bool:
        return self.store.get_bool(PERIODIC_SYNC_ENABLED, False)

    def set_periodic_sync_enabled(self, enabled: bool) -> None:
        self.store.set(PERIODIC_SYNC_ENABLED, bool(enabled))

    def is_auto_sync_enabled(self) -> bool:
        return self.store.get_bool(AUTO_SYNC_ENABLED, False)

    def set_auto_sync_enabled(self, enabled: bool) -> None:
        self.store.set(AUTO_SYNC_ENABLED, bool(enabled))

    def get_sync_interval(self, default: int) -> int:
        return self.store.get_int(SYNC_INTERVAL, default) or default

    def set_sync_interval(self, minutes: int) -> None:
        self.store.set(SYNC_INTERVAL, int(minutes))

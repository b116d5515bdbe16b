"""Pending sync discovery and acknowledgement for the consuming layer."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..storage.signals import SignalStore
from ..storage.store import SignalStoreError
from ..utils.logging import LoggerMixin
from .worker import WorkOutput


@dataclass(frozen=True)
class PendingSync:
    """Result of a pending sync check."""

    has_pending_sync: bool
    triggered_at_epoch_millis: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasPendingSync": self.has_pending_sync,
            "triggeredAt": self.triggered_at_epoch_millis,
        }


class SyncHandoff(LoggerMixin):
    """Read/clear operations over the durable sync signal.

    The consumer clears the signal only after it has durably started or
    finished the sync; a signal that is never cleared stays pending.
    """

    def __init__(self, signal_store: SignalStore):
        self.signal_store = signal_store

    def check_pending_sync(self) -> PendingSync:
        try:
            signal = self.signal_store.read_signal()
        except SignalStoreError:
            raise
        except Exception as e:
            raise SignalStoreError("check pending sync", str(e)) from e

        return PendingSync(
            has_pending_sync=signal.pending_sync,
            triggered_at_epoch_millis=signal.triggered_at_epoch_millis,
        )

    def clear_pending_sync(self) -> bool:
        try:
            self.signal_store.clear_pending()
        except SignalStoreError:
            raise
        except Exception as e:
            raise SignalStoreError("clear pending sync", str(e)) from e

        self.logger.debug("Pending sync flag cleared")
        return True

    def last_outcome(self) -> Optional[WorkOutput]:
        """Output of the most recent attempt, skipped or completed."""
        try:
            outcome = self.signal_store.last_outcome()
        except SignalStoreError:
            raise
        except Exception as e:
            raise SignalStoreError("read last outcome", str(e)) from e

        if outcome is None:
            return None
        return WorkOutput(outcome.status, outcome.sync_count, outcome.timestamp_epoch_millis)

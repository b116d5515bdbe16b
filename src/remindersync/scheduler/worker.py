"""Sync attempt executor run by the host engine on every firing."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..storage.signals import SignalStore
from ..utils.logging import get_logger
from .blackout import BlackoutWindow
from .engine import WorkResult


STATUS_COMPLETED = "completed"
STATUS_SKIPPED_NIGHT = "skipped_night"


def to_epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch; naive datetimes are taken as local time."""
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class WorkOutput:
    """Data attached to every terminal state of a sync attempt."""

    status: str
    sync_count: int
    timestamp_epoch_millis: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "sync_count": self.sync_count,
            "timestamp": self.timestamp_epoch_millis,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["WorkOutput"]:
        if not data or "status" not in data:
            return None
        return cls(
            status=data["status"],
            sync_count=int(data.get("sync_count", 0)),
            timestamp_epoch_millis=int(data.get("timestamp", 0)),
        )


class SyncAttemptExecutor:
    """Periodic unit of work that signals the consuming layer a sync is due.

    The executor never performs the synchronization itself. Outside the
    blackout window it writes a durable pending-sync signal and reports
    success; inside the window it reports a skipped success without touching
    the signal. Any failure while evaluating the window or writing the signal
    asks the host engine to retry.
    """

    def __init__(
        self,
        signal_store: SignalStore,
        blackout: Optional[BlackoutWindow] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.signal_store = signal_store
        self.blackout = blackout or BlackoutWindow()
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)

    def do_work(self) -> WorkResult:
        self.logger.debug("Sync attempt triggered")

        try:
            now = self.clock()
            if self.blackout.is_suppressed(now):
                self.logger.info(
                    "Skipping sync during night hours",
                    blackout=self.blackout.describe()
                )
                return self._finish(WorkOutput(STATUS_SKIPPED_NIGHT, 0, to_epoch_millis(now)))

            triggered_at = to_epoch_millis(now)
            self.signal_store.mark_pending(triggered_at)
            self.logger.info("Pending sync signal written", triggered_at=triggered_at)

            return self._finish(WorkOutput(STATUS_COMPLETED, 1, triggered_at))

        except Exception as e:
            self.logger.error("Sync attempt failed, requesting retry", error=str(e))
            return WorkResult.retry()

    def _finish(self, output: WorkOutput) -> WorkResult:
        try:
            self.signal_store.record_outcome(
                output.status,
                output.sync_count,
                output.timestamp_epoch_millis
            )
        except Exception as e:
            self.logger.warning("Failed to record sync outcome", status=output.status, error=str(e))
        return WorkResult.success(output.to_dict())

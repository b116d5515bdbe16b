"""Consumer-side sync service.

Owns the user-facing auto-sync switch: starting and stopping the periodic
job while persisting the auto-sync preference, updating the interval, and
polling for pending sync signals to hand them to the actual sync logic.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

from .config.schema import clamp_interval
from .scheduler.blackout import BlackoutWindow
from .scheduler.handoff import SyncHandoff
from .scheduler.job_scheduler import JobScheduler, StartResult
from .storage.signals import SignalStore
from .utils.logging import get_logger, log_execution_time


DEFAULT_SYNC_INTERVAL_MINUTES = 30


class SyncService:
    """Application-level controller of the periodic reminder sync."""

    def __init__(
        self,
        job_scheduler: JobScheduler,
        handoff: SyncHandoff,
        signal_store: SignalStore,
        sync_handler: Optional[Callable[[], Any]] = None,
        blackout: Optional[BlackoutWindow] = None,
        default_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize sync service.

        Args:
            job_scheduler: Lifecycle manager of the periodic job
            handoff: Pending sync query API
            signal_store: Store holding the auto-sync and interval preferences
            sync_handler: Performs the actual synchronization when a sync is due
            blackout: Window during which pending syncs are held back
            default_interval_minutes: Interval used when none has been saved
            clock: Source of the current local time
        """
        self.job_scheduler = job_scheduler
        self.handoff = handoff
        self.signal_store = signal_store
        self.sync_handler = sync_handler
        self.blackout = blackout or BlackoutWindow()
        self.default_interval_minutes = default_interval_minutes
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)

    def start(self) -> Optional[StartResult]:
        """Start periodic sync with the saved interval and remember the choice."""
        if self.job_scheduler.is_running():
            self.logger.info("Periodic sync already running")
            return None

        interval = self.get_sync_interval()
        result = self.job_scheduler.start(interval)
        self.signal_store.set_auto_sync_enabled(True)

        self.logger.info("Sync service started", interval_minutes=result.effective_interval_minutes)
        return result

    def stop(self) -> None:
        """Stop periodic sync and remember that auto-sync is off."""
        self.job_scheduler.stop()
        self.signal_store.set_auto_sync_enabled(False)
        self.logger.info("Sync service stopped")

    def is_running(self) -> bool:
        return self.job_scheduler.is_running()

    def get_sync_interval(self) -> int:
        return self.signal_store.get_sync_interval(self.default_interval_minutes)

    def set_sync_interval(self, minutes: int) -> int:
        """Save a new interval and apply it to the running job, if any."""
        effective = clamp_interval(minutes, self.job_scheduler.min_interval_minutes)
        if effective != minutes:
            self.logger.warning("Interval adjusted to minimum", requested_minutes=minutes, effective_minutes=effective)

        self.signal_store.set_sync_interval(effective)

        if self.job_scheduler.is_running():
            self.job_scheduler.start(effective)

        self.logger.info("Sync interval updated", interval_minutes=effective)
        return effective

    @log_execution_time
    def check_and_execute_pending_sync(self) -> bool:
        """Run the sync handler for a pending signal, then acknowledge it.

        Returns True when a pending sync was handled and cleared. The signal is
        left pending for a later check when no handler is set, when the
        handler fails, or during the blackout window.
        """
        pending = self.handoff.check_pending_sync()
        if not pending.has_pending_sync:
            return False

        self.logger.info("Pending sync detected", triggered_at=pending.triggered_at_epoch_millis)

        if self.blackout.is_suppressed(self.clock()):
            self.logger.info("Pending sync held during night hours", blackout=self.blackout.describe())
            return False

        if self.sync_handler is None:
            self.logger.warning("No sync handler configured, signal left pending")
            return False

        try:
            self.sync_handler()
        except Exception as e:
            self.logger.error("Sync handler failed, signal left pending", error=str(e))
            return False

        self.handoff.clear_pending_sync()
        self.logger.info("Pending sync handled", triggered_at=pending.triggered_at_epoch_millis)
        return True

    async def poll_forever(self, interval_seconds: float = 60.0):
        """Poll for pending syncs until cancelled."""
        self.logger.info("Pending sync polling started", interval_seconds=interval_seconds)

        try:
            while True:
                try:
                    await asyncio.to_thread(self.check_and_execute_pending_sync)
                except Exception as e:
                    self.logger.error("Error while checking pending sync", error=str(e))
                await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            self.logger.info("Pending sync polling stopped")
            raise

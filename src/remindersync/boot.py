"""Boot-time restore of the periodic sync."""

from .service import SyncService
from .storage.signals import SignalStore
from .utils.logging import LoggerMixin


class BootHandler(LoggerMixin):
    """Re-establishes the periodic job after a restart if auto-sync was on."""

    def __init__(self, signal_store: SignalStore, sync_service: SyncService):
        self.signal_store = signal_store
        self.sync_service = sync_service

    def on_boot_completed(self) -> bool:
        """Returns True if the periodic sync was restored."""
        self.logger.debug("Boot completed, checking auto-sync preference")

        if not self.signal_store.is_auto_sync_enabled():
            self.logger.info("Auto-sync was not enabled, skipping restore")
            return False

        self.logger.info("Auto-sync was enabled, restoring periodic sync")
        self.sync_service.start()
        return True

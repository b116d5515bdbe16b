"""Persisted signal store package."""

from .database import (
    DatabaseManager,
    get_db_manager,
    init_database,
    close_database
)

from .models import PreferenceModel

from .store import (
    StateStore,
    InMemoryStateStore,
    SqlStateStore,
    SignalStoreError
)

from .signals import (
    SignalStore,
    SyncSignal,
    SyncOutcome
)

__all__ = [
    "DatabaseManager",
    "get_db_manager",
    "init_database",
    "close_database",

    "PreferenceModel",

    "StateStore",
    "InMemoryStateStore",
    "SqlStateStore",
    "SignalStoreError",

    "SignalStore",
    "SyncSignal",
    "SyncOutcome"
]

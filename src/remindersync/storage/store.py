"""Durable key/value state store used to hand signals across actors."""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import DatabaseManager
from .models import PreferenceModel
from ..utils.logging import get_logger


logger = get_logger("storage.store")


class SignalStoreError(Exception):
    """Raised when the persisted store cannot be read or written."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class StateStore(ABC):
    """Key/value store with atomic writes.

    Values are booleans, integers, floats or strings. ``set_many`` writes all
    given keys in one atomic step.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""

    @abstractmethod
    def set_many(self, values: Dict[str, Any]) -> None:
        """Atomically store every key of ``values``."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def get_bool(self, key: str, default: bool = False) -> bool:
        return bool(self.get(key, default))

    def get_int(self, key: str, default: int = 0) -> int:
        return int(self.get(key, default))

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key, default)
        return None if value is None else str(value)


class InMemoryStateStore(StateStore):
    """Process-local store, mainly for tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set_many(self, values: Dict[str, Any]) -> None:
        with self._lock:
            self._values.update(values)

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)


def _encode(value: Any) -> tuple:
    # bool is checked first since it is a subclass of int
    if isinstance(value, bool):
        return "bool", "1" if value else "0"
    if isinstance(value, int):
        return "int", str(value)
    if isinstance(value, float):
        return "float", repr(value)
    if isinstance(value, str):
        return "str", value
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def _decode(value_type: str, raw: str) -> Any:
    if value_type == "bool":
        return raw == "1"
    if value_type == "int":
        return int(raw)
    if value_type == "float":
        return float(raw)
    return raw


class SqlStateStore(StateStore):
    """Store backed by the ``preferences`` table; survives restarts."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with self.db_manager.session_scope() as session:
                row = session.get(PreferenceModel, key)
                if row is None:
                    return default
                return _decode(row.value_type, row.value)
        except SQLAlchemyError as e:
            logger.error("Failed to read preference", key=key, error=str(e))
            raise SignalStoreError("get", str(e)) from e

    def set_many(self, values: Dict[str, Any]) -> None:
        encoded = {key: _encode(value) for key, value in values.items()}
        try:
            self._write(encoded)
        except IntegrityError:
            # Another actor inserted one of the keys first; the retry updates it
            logger.debug("Concurrent insert detected, retrying write", keys=list(values))
            try:
                self._write(encoded)
            except SQLAlchemyError as e:
                raise SignalStoreError("set", str(e)) from e
        except SQLAlchemyError as e:
            logger.error("Failed to write preferences", keys=list(values), error=str(e))
            raise SignalStoreError("set", str(e)) from e

    def remove(self, key: str) -> None:
        try:
            with self.db_manager.session_scope() as session:
                row = session.get(PreferenceModel, key)
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as e:
            logger.error("Failed to remove preference", key=key, error=str(e))
            raise SignalStoreError("remove", str(e)) from e

    def _write(self, encoded: Dict[str, tuple]) -> None:
        with self.db_manager.session_scope() as session:
            for key, (value_type, raw) in encoded.items():
                row = session.get(PreferenceModel, key)
                if row is None:
                    session.add(PreferenceModel(key=key, value_type=value_type, value=raw))
                else:
                    row.value_type = value_type
                    row.value = raw

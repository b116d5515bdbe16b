"""Operations exposed to the consuming (application) layer.

Every call returns a :class:`BridgeResult`: either ``success`` with data or a
labelled error carrying a stable code and a human-readable message.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from .scheduler.handoff import SyncHandoff
from .scheduler.job_scheduler import JobScheduler, SchedulerError
from .storage.store import SignalStoreError
from .utils.logging import get_logger


class ErrorCode(str, Enum):
    """Stable error codes returned to the consumer."""
    SCHEDULER_ERROR = "SCHEDULER_ERROR"
    SIGNAL_STORE_ERROR = "SIGNAL_STORE_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class BridgeError(BaseModel):
    """Labelled error of a failed bridge call."""

    code: ErrorCode
    message: str


class BridgeResult(BaseModel):
    """Result of a bridge call."""

    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[BridgeError] = None

    @classmethod
    def ok(cls, **data: Any) -> "BridgeResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> "BridgeResult":
        return cls(success=False, error=BridgeError(code=code, message=message))


class SyncBridge:
    """Facade over the lifecycle manager and handoff API."""

    def __init__(self, job_scheduler: JobScheduler, handoff: SyncHandoff):
        self.job_scheduler = job_scheduler
        self.handoff = handoff
        self.logger = get_logger(self.__class__.__name__)

    def start_periodic_sync(self, interval_minutes: Any) -> BridgeResult:
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
            try:
                interval_minutes = int(str(interval_minutes))
            except ValueError:
                return BridgeResult.fail(
                    ErrorCode.INVALID_ARGUMENT,
                    f"Interval must be an integer number of minutes, got {interval_minutes!r}"
                )

        def _start():
            result = self.job_scheduler.start(interval_minutes)
            return BridgeResult.ok(
                intervalMinutes=result.effective_interval_minutes,
                workName=result.job_name
            )

        return self._call("start periodic sync", _start)

    def stop_periodic_sync(self) -> BridgeResult:
        def _stop():
            self.job_scheduler.stop()
            return BridgeResult.ok(message="Sync stopped successfully")

        return self._call("stop periodic sync", _stop)

    def is_sync_running(self) -> BridgeResult:
        return self._call(
            "check sync running",
            lambda: BridgeResult.ok(isRunning=self.job_scheduler.is_running())
        )

    def get_work_status(self) -> BridgeResult:
        return self._call(
            "get work status",
            lambda: BridgeResult.ok(**self.job_scheduler.get_status().to_dict())
        )

    def check_pending_sync(self) -> BridgeResult:
        return self._call(
            "check pending sync",
            lambda: BridgeResult.ok(**self.handoff.check_pending_sync().to_dict())
        )

    def clear_pending_sync(self) -> BridgeResult:
        def _clear():
            self.handoff.clear_pending_sync()
            return BridgeResult.ok(message="Pending sync cleared")

        return self._call("clear pending sync", _clear)

    def _call(self, operation: str, func: Callable[[], BridgeResult]) -> BridgeResult:
        try:
            return func()
        except SchedulerError as e:
            return self._fail(operation, ErrorCode.SCHEDULER_ERROR, e)
        except SignalStoreError as e:
            return self._fail(operation, ErrorCode.SIGNAL_STORE_ERROR, e)
        except Exception as e:
            return self._fail(operation, ErrorCode.UNEXPECTED_ERROR, e)

    def _fail(self, operation: str, code: ErrorCode, error: Exception) -> BridgeResult:
        detail = getattr(error, "message", None) or str(error)
        self.logger.error("Bridge call failed", operation=operation, code=code.value, error=detail)
        return BridgeResult.fail(code, f"Failed to {operation}: {detail}")

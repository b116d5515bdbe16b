"""Lifecycle management of the recurring reminder sync job."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..config.schema import MIN_PERIODIC_INTERVAL_MINUTES, SyncConstraints, SyncJobConfig, clamp_interval
from ..storage.signals import SignalStore
from ..utils.logging import get_logger
from .engine import HostEngine, PeriodicWorkRequest, WorkInfo, WorkState
from .worker import SyncAttemptExecutor, WorkOutput


DEFAULT_JOB_NAME = "ReminderSync"


class SchedulerError(Exception):
    """Raised when an operation against the host engine fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"Failed to {operation}: {message}")


@dataclass(frozen=True)
class StartResult:
    """Outcome of starting (or updating) the periodic sync."""

    effective_interval_minutes: int
    job_name: str


@dataclass(frozen=True)
class JobStatusSnapshot:
    """Read-only projection of the host engine's record for the job."""

    state: WorkState
    run_attempt_count: int = 0
    last_outcome_label: Optional[str] = None
    last_run_state: Optional[WorkState] = None
    job_id: Optional[str] = None
    next_run_time: Optional[datetime] = None

    @classmethod
    def not_scheduled(cls) -> "JobStatusSnapshot":
        return cls(state=WorkState.NOT_SCHEDULED)

    @classmethod
    def from_work_info(cls, info: WorkInfo) -> "JobStatusSnapshot":
        label = None
        if info.last_run_state == WorkState.SUCCEEDED:
            output = WorkOutput.from_dict(info.output_data)
            label = output.status if output else "unknown"
        return cls(
            state=info.state,
            run_attempt_count=info.run_attempt_count,
            last_outcome_label=label,
            last_run_state=info.last_run_state,
            job_id=info.id,
            next_run_time=info.next_run_time,
        )

    @property
    def is_active(self) -> bool:
        return self.state in (WorkState.ENQUEUED, WorkState.RUNNING)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "state": self.state.value,
            "runAttemptCount": self.run_attempt_count,
        }
        if self.job_id is not None:
            data["id"] = self.job_id
        if self.last_outcome_label is not None:
            data["lastStatus"] = self.last_outcome_label
        if self.next_run_time is not None:
            data["nextRunTime"] = self.next_run_time.isoformat()
        return data


class JobScheduler:
    """Registers, updates and cancels the uniquely named periodic sync job."""

    def __init__(
        self,
        engine: HostEngine,
        executor: SyncAttemptExecutor,
        signal_store: Optional[SignalStore] = None,
        job_name: str = DEFAULT_JOB_NAME,
        min_interval_minutes: int = MIN_PERIODIC_INTERVAL_MINUTES,
        constraints: Optional[SyncConstraints] = None
    ):
        """Initialize job scheduler.

        Args:
            engine: Host scheduling engine that runs the work
            executor: Unit of work registered for every firing
            signal_store: Store that records whether periodic sync is enabled
            job_name: Unique name of the periodic job
            min_interval_minutes: Shortest interval the engine accepts
            constraints: Execution preconditions attached to the job
        """
        self.engine = engine
        self.executor = executor
        self.signal_store = signal_store
        self.job_name = job_name
        self.min_interval_minutes = max(min_interval_minutes, MIN_PERIODIC_INTERVAL_MINUTES)
        self.constraints = constraints or SyncConstraints()
        self.logger = get_logger(self.__class__.__name__)

    def start(self, interval_minutes: int) -> StartResult:
        """Start periodic sync, or update the interval of the running job."""
        effective = clamp_interval(interval_minutes, self.min_interval_minutes)
        if effective != interval_minutes:
            self.logger.warning(
                "Interval adjusted to minimum",
                requested_minutes=interval_minutes,
                effective_minutes=effective
            )

        config = SyncJobConfig(
            job_name=self.job_name,
            interval_minutes=effective,
            constraints=self.constraints
        )

        try:
            self.engine.enqueue_or_replace(PeriodicWorkRequest(
                name=config.job_name,
                interval_minutes=config.interval_minutes,
                work=self.executor.do_work,
                constraints=config.constraints
            ))
        except Exception as e:
            self.logger.error("Failed to start periodic sync", job_name=self.job_name, error=str(e))
            raise SchedulerError("start sync", str(e)) from e

        self._mark_enabled(True)
        self.logger.info("Periodic sync started", job_name=self.job_name, interval_minutes=effective)

        return StartResult(effective_interval_minutes=effective, job_name=config.job_name)

    def stop(self) -> bool:
        """Cancel the periodic job; stopping when nothing is scheduled is fine."""
        try:
            cancelled = self.engine.cancel(self.job_name)
        except Exception as e:
            self.logger.error("Failed to stop periodic sync", job_name=self.job_name, error=str(e))
            raise SchedulerError("stop sync", str(e)) from e

        self._mark_enabled(False)
        self.logger.info("Periodic sync stopped", job_name=self.job_name, was_scheduled=cancelled)
        return True

    def is_running(self) -> bool:
        return self.get_status().is_active

    def get_status(self) -> JobStatusSnapshot:
        try:
            info = self.engine.query_status(self.job_name)
        except Exception as e:
            self.logger.error("Failed to query job status", job_name=self.job_name, error=str(e))
            raise SchedulerError("get status", str(e)) from e

        if info is None:
            return JobStatusSnapshot.not_scheduled()
        return JobStatusSnapshot.from_work_info(info)

    def trigger_now(self) -> JobStatusSnapshot:
        """Run one sync attempt immediately, outside the regular cadence."""
        try:
            info = self.engine.run_now(self.job_name)
        except Exception as e:
            self.logger.error("Failed to trigger sync attempt", job_name=self.job_name, error=str(e))
            raise SchedulerError("trigger sync", str(e)) from e

        if info is None:
            raise SchedulerError("trigger sync", f"job {self.job_name} is not scheduled")
        if info.state == WorkState.CANCELLED:
            raise SchedulerError("trigger sync", f"job {self.job_name} was stopped")
        return JobStatusSnapshot.from_work_info(info)

    def _mark_enabled(self, enabled: bool):
        if self.signal_store is None:
            return
        try:
            self.signal_store.set_periodic_sync_enabled(enabled)
        except Exception as e:
            self.logger.warning("Failed to persist periodic sync flag", enabled=enabled, error=str(e))

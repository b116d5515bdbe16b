"""Host scheduling engine: the capability that runs periodic work.

``HostEngine`` is the narrow interface the lifecycle manager depends on.
``APSchedulerEngine`` implements it on top of an APScheduler background
scheduler, adding unique named work, execution constraints and retry backoff.
"""

import dataclasses
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config.schema import SyncConstraints
from ..utils.logging import get_logger
from .constraints import ConstraintChecker


RETRY_JOB_SUFFIX = ":retry"


class WorkState(str, Enum):
    """States of a unit of periodic work."""
    NOT_SCHEDULED = "NOT_SCHEDULED"
    ENQUEUED = "ENQUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class WorkOutcome(str, Enum):
    """What a unit of work reports back to the engine."""
    SUCCESS = "success"
    RETRY = "retry"


@dataclass
class WorkResult:
    """Terminal state of a single work invocation plus its output data."""

    outcome: WorkOutcome
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, output: Optional[Dict[str, Any]] = None) -> "WorkResult":
        return cls(WorkOutcome.SUCCESS, dict(output or {}))

    @classmethod
    def retry(cls, output: Optional[Dict[str, Any]] = None) -> "WorkResult":
        return cls(WorkOutcome.RETRY, dict(output or {}))


@dataclass
class PeriodicWorkRequest:
    """Request to run ``work`` every ``interval_minutes`` under a unique name."""

    name: str
    interval_minutes: int
    work: Callable[[], WorkResult]
    constraints: SyncConstraints = field(default_factory=SyncConstraints)


@dataclass
class WorkInfo:
    """The engine's authoritative record for a named unit of work."""

    id: str
    name: str
    state: WorkState
    interval_minutes: int
    run_attempt_count: int = 0
    output_data: Dict[str, Any] = field(default_factory=dict)
    last_run_state: Optional[WorkState] = None
    next_run_time: Optional[datetime] = None


@dataclass
class BackoffPolicy:
    """Exponential backoff between retries of a failed attempt."""

    initial_seconds: float = 30.0
    multiplier: float = 2.0
    max_seconds: float = 5 * 60 * 60
    max_attempts: Optional[int] = None

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = self.initial_seconds * (self.multiplier ** max(attempt - 1, 0))
        return min(delay, self.max_seconds)

    def allows(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt <= self.max_attempts


class HostEngine(ABC):
    """Capability interface of the host scheduling engine."""

    @abstractmethod
    def enqueue_or_replace(self, request: PeriodicWorkRequest) -> WorkInfo:
        """Schedule ``request``, updating any existing work with the same name."""

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Cancel the named work. Returns False if nothing was scheduled."""

    @abstractmethod
    def query_status(self, name: str) -> Optional[WorkInfo]:
        """Return a snapshot of the named work, or None if it never existed."""

    @abstractmethod
    def run_now(self, name: str) -> Optional[WorkInfo]:
        """Run the named work once, synchronously, outside its cadence."""

    def shutdown(self, wait: bool = True) -> None:
        """Release engine resources."""


class APSchedulerEngine(HostEngine):
    """Host engine backed by an APScheduler background scheduler."""

    def __init__(
        self,
        scheduler: Optional[BaseScheduler] = None,
        constraint_checker: Optional[ConstraintChecker] = None,
        backoff_policy: Optional[BackoffPolicy] = None,
        max_workers: int = 2,
        misfire_grace_seconds: int = 300
    ):
        """Initialize the engine.

        Args:
            scheduler: Scheduler to use; a BackgroundScheduler is created if omitted
            constraint_checker: Evaluates job preconditions before each firing
            backoff_policy: Retry delay policy for attempts that ask for a retry
            max_workers: Worker threads running the scheduled work
            misfire_grace_seconds: How late a firing may still run
        """
        self.scheduler = scheduler or BackgroundScheduler(
            executors={'default': ThreadPoolExecutor(max_workers)},
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,  # Only one instance per job
                'misfire_grace_time': misfire_grace_seconds
            }
        )
        self.constraint_checker = constraint_checker or ConstraintChecker()
        self.backoff_policy = backoff_policy or BackoffPolicy()
        self.logger = get_logger(self.__class__.__name__)

        self._lock = threading.RLock()
        self._records: Dict[str, WorkInfo] = {}
        self._requests: Dict[str, PeriodicWorkRequest] = {}

        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)
        self.scheduler.add_listener(self._job_max_instances, EVENT_JOB_MAX_INSTANCES)

    def enqueue_or_replace(self, request: PeriodicWorkRequest) -> WorkInfo:
        with self._lock:
            self._ensure_started()

            record = self._records.get(request.name)
            if record is None or record.state == WorkState.CANCELLED:
                record = WorkInfo(
                    id=str(uuid.uuid4()),
                    name=request.name,
                    state=WorkState.ENQUEUED,
                    interval_minutes=request.interval_minutes
                )
                self._records[request.name] = record
                action = "enqueued"
            else:
                record.interval_minutes = request.interval_minutes
                if record.state != WorkState.RUNNING:
                    record.state = WorkState.ENQUEUED
                action = "updated"

            self._requests[request.name] = request

            # Same job id with replace_existing keeps a single job per name
            self.scheduler.add_job(
                func=self._run_work,
                trigger=IntervalTrigger(minutes=request.interval_minutes),
                args=[request.name],
                id=request.name,
                name=f"Periodic work: {request.name}",
                replace_existing=True
            )
            record.next_run_time = self._next_run_time(request.name)

            self.logger.info(
                f"Periodic work {action}",
                work_name=request.name,
                work_id=record.id,
                interval_minutes=request.interval_minutes,
                next_run=record.next_run_time
            )
            return dataclasses.replace(record)

    def cancel(self, name: str) -> bool:
        with self._lock:
            for job_id in (name, name + RETRY_JOB_SUFFIX):
                try:
                    self.scheduler.remove_job(job_id)
                except JobLookupError:
                    pass

            self._requests.pop(name, None)
            record = self._records.get(name)
            if record is None or record.state == WorkState.CANCELLED:
                self.logger.debug("No scheduled work to cancel", work_name=name)
                return False

            record.state = WorkState.CANCELLED
            record.next_run_time = None
            self.logger.info("Periodic work cancelled", work_name=name, work_id=record.id)
            return True

    def query_status(self, name: str) -> Optional[WorkInfo]:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                return None
            if record.state != WorkState.CANCELLED:
                record.next_run_time = self._next_run_time(name)
            return dataclasses.replace(record, output_data=dict(record.output_data))

    def run_now(self, name: str) -> Optional[WorkInfo]:
        self._run_work(name)
        return self.query_status(name)

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Host engine stopped")

    def _ensure_started(self):
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("Host engine started")

    def _next_run_time(self, name: str) -> Optional[datetime]:
        job = self.scheduler.get_job(name)
        return getattr(job, "next_run_time", None) if job else None

    def _run_work(self, name: str):
        with self._lock:
            request = self._requests.get(name)
            record = self._records.get(name)
            if request is None or record is None or record.state == WorkState.CANCELLED:
                return
            if record.state == WorkState.RUNNING:
                self.logger.warning("Work already running, skipping firing", work_name=name)
                return
            # Claimed before the constraint check so overlapping firings skip
            record.state = WorkState.RUNNING

        try:
            unmet = self.constraint_checker.unmet(request.constraints)
        except Exception as e:
            self.logger.error("Constraint check failed, deferring work", work_name=name, error=str(e))
            unmet = ["constraint_check"]

        if unmet:
            self.logger.info("Constraints not met, deferring work", work_name=name, unmet=unmet)
            with self._lock:
                self._finish_run(record)
            return

        with self._lock:
            if record.state == WorkState.CANCELLED:
                return

        try:
            result = request.work()
        except Exception as e:
            self.logger.error("Work raised an unhandled error", work_name=name, error=str(e))
            with self._lock:
                record.last_run_state = WorkState.FAILED
                record.output_data = {}
                self._finish_run(record)
            return

        with self._lock:
            if result.outcome == WorkOutcome.SUCCESS:
                record.run_attempt_count = 0
                record.output_data = dict(result.output)
                record.last_run_state = WorkState.SUCCEEDED
            else:
                record.run_attempt_count += 1
                record.last_run_state = WorkState.FAILED
                self._schedule_retry(record)
            self._finish_run(record)

    def _finish_run(self, record: WorkInfo):
        if record.state != WorkState.CANCELLED:
            record.state = WorkState.ENQUEUED
            record.next_run_time = self._next_run_time(record.name)

    def _schedule_retry(self, record: WorkInfo):
        attempt = record.run_attempt_count
        if record.state == WorkState.CANCELLED or not self.backoff_policy.allows(attempt):
            self.logger.warning(
                "Retry not scheduled, waiting for next period",
                work_name=record.name,
                run_attempt_count=attempt
            )
            return

        delay = self.backoff_policy.delay_for(attempt)
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self.scheduler.add_job(
            func=self._run_work,
            trigger=DateTrigger(run_date=run_date),
            args=[record.name],
            id=record.name + RETRY_JOB_SUFFIX,
            name=f"Retry: {record.name}",
            replace_existing=True
        )
        self.logger.info(
            "Retry scheduled",
            work_name=record.name,
            run_attempt_count=attempt,
            delay_seconds=delay
        )

    def _job_error(self, event):
        self.logger.error("Scheduled job failed", job_id=event.job_id, error=str(event.exception))

    def _job_missed(self, event):
        self.logger.warning(
            "Scheduled job missed",
            job_id=event.job_id,
            scheduled_run_time=event.scheduled_run_time
        )

    def _job_max_instances(self, event):
        self.logger.warning("Job still running, firing skipped", job_id=event.job_id)

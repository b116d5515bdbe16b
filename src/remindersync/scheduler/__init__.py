"""Scheduler package for the periodic reminder sync job."""

from .blackout import BlackoutWindow
from .constraints import ConstraintChecker, AlwaysSatisfied
from .engine import (
    HostEngine,
    APSchedulerEngine,
    BackoffPolicy,
    PeriodicWorkRequest,
    WorkInfo,
    WorkOutcome,
    WorkResult,
    WorkState
)
from .worker import SyncAttemptExecutor, WorkOutput, STATUS_COMPLETED, STATUS_SKIPPED_NIGHT
from .job_scheduler import JobScheduler, JobStatusSnapshot, SchedulerError, StartResult
from .handoff import SyncHandoff, PendingSync

__all__ = [
    "BlackoutWindow",
    "ConstraintChecker",
    "AlwaysSatisfied",
    "HostEngine",
    "APSchedulerEngine",
    "BackoffPolicy",
    "PeriodicWorkRequest",
    "WorkInfo",
    "WorkOutcome",
    "WorkResult",
    "WorkState",
    "SyncAttemptExecutor",
    "WorkOutput",
    "STATUS_COMPLETED",
    "STATUS_SKIPPED_NIGHT",
    "JobScheduler",
    "JobStatusSnapshot",
    "SchedulerError",
    "StartResult",
    "SyncHandoff",
    "PendingSync"
]

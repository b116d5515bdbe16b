"""Shared fixtures and fakes for the reminder sync tests."""

import dataclasses
import uuid
from datetime import datetime
from typing import Dict, Optional

import pytest

from remindersync.scheduler.blackout import BlackoutWindow
from remindersync.scheduler.engine import (
    HostEngine,
    PeriodicWorkRequest,
    WorkInfo,
    WorkOutcome,
    WorkState
)
from remindersync.scheduler.handoff import SyncHandoff
from remindersync.scheduler.job_scheduler import JobScheduler
from remindersync.scheduler.worker import SyncAttemptExecutor
from remindersync.storage import InMemoryStateStore, SignalStore


DAYTIME = datetime(2026, 10, 17, 10, 30)
NIGHTTIME = datetime(2026, 10, 17, 22, 15)


class MutableClock:
    """Callable clock whose time can be moved by the test."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeHostEngine(HostEngine):
    """In-memory host engine that runs work only when asked to."""

    def __init__(self):
        self.records: Dict[str, WorkInfo] = {}
        self.requests: Dict[str, PeriodicWorkRequest] = {}
        self.enqueue_calls = 0
        self.fail_with: Optional[Exception] = None

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def enqueue_or_replace(self, request: PeriodicWorkRequest) -> WorkInfo:
        self._check_failure()
        self.enqueue_calls += 1
        record = self.records.get(request.name)
        if record is None or record.state == WorkState.CANCELLED:
            record = WorkInfo(
                id=str(uuid.uuid4()),
                name=request.name,
                state=WorkState.ENQUEUED,
                interval_minutes=request.interval_minutes
            )
            self.records[request.name] = record
        else:
            record.interval_minutes = request.interval_minutes
            record.state = WorkState.ENQUEUED
        self.requests[request.name] = request
        return dataclasses.replace(record)

    def cancel(self, name: str) -> bool:
        self._check_failure()
        self.requests.pop(name, None)
        record = self.records.get(name)
        if record is None or record.state == WorkState.CANCELLED:
            return False
        record.state = WorkState.CANCELLED
        return True

    def query_status(self, name: str) -> Optional[WorkInfo]:
        self._check_failure()
        record = self.records.get(name)
        return dataclasses.replace(record) if record else None

    def run_now(self, name: str) -> Optional[WorkInfo]:
        self._check_failure()
        request = self.requests.get(name)
        record = self.records.get(name)
        if request is None or record is None:
            return self.query_status(name)

        result = request.work()
        if result.outcome == WorkOutcome.SUCCESS:
            record.run_attempt_count = 0
            record.output_data = dict(result.output)
            record.last_run_state = WorkState.SUCCEEDED
        else:
            record.run_attempt_count += 1
            record.last_run_state = WorkState.FAILED
        record.state = WorkState.ENQUEUED
        return self.query_status(name)

    def active_jobs(self):
        return [r for r in self.records.values() if r.state in (WorkState.ENQUEUED, WorkState.RUNNING)]


@pytest.fixture
def state_store():
    return InMemoryStateStore()


@pytest.fixture
def signal_store(state_store):
    return SignalStore(state_store)


@pytest.fixture
def clock():
    return MutableClock(DAYTIME)


@pytest.fixture
def executor(signal_store, clock):
    return SyncAttemptExecutor(signal_store, blackout=BlackoutWindow(), clock=clock)


@pytest.fixture
def fake_engine():
    return FakeHostEngine()


@pytest.fixture
def job_scheduler(fake_engine, executor, signal_store):
    return JobScheduler(engine=fake_engine, executor=executor, signal_store=signal_store)


@pytest.fixture
def handoff(signal_store):
    return SyncHandoff(signal_store)

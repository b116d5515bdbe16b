"""Tests for the periodic sync job lifecycle."""

from datetime import datetime

import pytest

from remindersync.scheduler.engine import WorkState
from remindersync.scheduler.job_scheduler import JobScheduler, JobStatusSnapshot, SchedulerError
from remindersync.scheduler.worker import STATUS_COMPLETED, STATUS_SKIPPED_NIGHT


class TestStart:

    def test_interval_below_minimum_is_clamped(self, job_scheduler, fake_engine):
        result = job_scheduler.start(5)

        assert result.effective_interval_minutes == 15
        assert result.job_name == "ReminderSync"
        assert fake_engine.requests["ReminderSync"].interval_minutes == 15

    def test_interval_above_minimum_is_kept(self, job_scheduler):
        assert job_scheduler.start(30).effective_interval_minutes == 30

    def test_constraints_attached(self, job_scheduler, fake_engine):
        job_scheduler.start(30)
        constraints = fake_engine.requests["ReminderSync"].constraints

        assert constraints.require_network is True
        assert constraints.require_storage_not_low is True
        assert constraints.require_charging is False
        assert constraints.require_device_idle is False
        assert constraints.require_battery_not_low is False

    def test_restart_replaces_existing_job(self, job_scheduler, fake_engine):
        job_scheduler.start(30)
        first_id = job_scheduler.get_status().job_id

        job_scheduler.start(60)

        assert len(fake_engine.active_jobs()) == 1
        assert fake_engine.records["ReminderSync"].interval_minutes == 60
        assert job_scheduler.get_status().job_id == first_id

    def test_start_marks_periodic_sync_enabled(self, job_scheduler, signal_store):
        job_scheduler.start(30)
        assert signal_store.is_periodic_sync_enabled() is True

    def test_engine_failure_raises_scheduler_error(self, job_scheduler, fake_engine):
        fake_engine.fail_with = RuntimeError("engine unavailable")

        with pytest.raises(SchedulerError) as exc_info:
            job_scheduler.start(30)

        assert exc_info.value.operation == "start sync"
        assert "engine unavailable" in exc_info.value.message


class TestStop:

    def test_stop_then_not_running(self, job_scheduler, signal_store):
        job_scheduler.start(30)
        assert job_scheduler.is_running() is True

        assert job_scheduler.stop() is True
        assert job_scheduler.is_running() is False
        assert job_scheduler.get_status().state == WorkState.CANCELLED
        assert signal_store.is_periodic_sync_enabled() is False

    def test_stop_when_nothing_scheduled(self, job_scheduler):
        assert job_scheduler.stop() is True
        assert job_scheduler.stop() is True

    def test_start_after_stop_creates_new_job(self, job_scheduler):
        job_scheduler.start(30)
        first_id = job_scheduler.get_status().job_id
        job_scheduler.stop()

        job_scheduler.start(30)

        status = job_scheduler.get_status()
        assert status.state == WorkState.ENQUEUED
        assert status.job_id != first_id


class TestStatus:

    def test_never_scheduled(self, job_scheduler):
        status = job_scheduler.get_status()
        assert status.state == WorkState.NOT_SCHEDULED
        assert status.to_dict() == {"state": "NOT_SCHEDULED", "runAttemptCount": 0}
        assert job_scheduler.is_running() is False

    def test_status_after_successful_run(self, job_scheduler):
        job_scheduler.start(15)
        assert job_scheduler.get_status().last_outcome_label is None

        job_scheduler.trigger_now()

        status = job_scheduler.get_status()
        assert status.state == WorkState.ENQUEUED
        assert status.last_run_state == WorkState.SUCCEEDED
        assert status.last_outcome_label == STATUS_COMPLETED
        assert status.to_dict()["lastStatus"] == STATUS_COMPLETED

    def test_status_reflects_latest_outcome(self, job_scheduler, clock):
        job_scheduler.start(15)
        job_scheduler.trigger_now()

        clock.now = datetime(2026, 10, 17, 21, 0)
        job_scheduler.trigger_now()

        assert job_scheduler.get_status().last_outcome_label == STATUS_SKIPPED_NIGHT

    def test_query_failure_is_not_reported_as_not_scheduled(self, job_scheduler, fake_engine):
        fake_engine.fail_with = RuntimeError("status query timed out")

        with pytest.raises(SchedulerError) as exc_info:
            job_scheduler.get_status()
        assert exc_info.value.operation == "get status"

        with pytest.raises(SchedulerError):
            job_scheduler.is_running()

    def test_trigger_without_job(self, job_scheduler):
        with pytest.raises(SchedulerError):
            job_scheduler.trigger_now()

    def test_trigger_after_stop(self, job_scheduler, signal_store):
        job_scheduler.start(30)
        job_scheduler.stop()

        with pytest.raises(SchedulerError) as exc_info:
            job_scheduler.trigger_now()

        assert exc_info.value.operation == "trigger sync"
        assert signal_store.read_signal().pending_sync is False

    def test_minimum_interval_cannot_go_below_engine_minimum(self, fake_engine, executor):
        scheduler = JobScheduler(fake_engine, executor, min_interval_minutes=5)
        assert scheduler.start(10).effective_interval_minutes == 15


class TestJobStatusSnapshot:

    def test_is_active(self):
        assert JobStatusSnapshot(state=WorkState.ENQUEUED).is_active
        assert JobStatusSnapshot(state=WorkState.RUNNING).is_active
        assert not JobStatusSnapshot(state=WorkState.CANCELLED).is_active
        assert not JobStatusSnapshot.not_scheduled().is_active

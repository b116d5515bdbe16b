"""Tests for the APScheduler-backed host engine."""

import threading
import time
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from remindersync.config.schema import SyncConstraints
from remindersync.scheduler.constraints import AlwaysSatisfied, ConstraintChecker
from remindersync.scheduler.engine import (
    APSchedulerEngine,
    BackoffPolicy,
    PeriodicWorkRequest,
    RETRY_JOB_SUFFIX,
    WorkResult,
    WorkState
)


@pytest.fixture
def engine():
    engine = APSchedulerEngine(constraint_checker=AlwaysSatisfied())
    yield engine
    engine.shutdown(wait=False)


def make_request(work=None, interval=15, name="ReminderSync"):
    work = work or MagicMock(return_value=WorkResult.success({"status": "completed", "sync_count": 1}))
    return PeriodicWorkRequest(name=name, interval_minutes=interval, work=work)


class TestEnqueue:

    def test_enqueue_creates_single_interval_job(self, engine):
        info = engine.enqueue_or_replace(make_request(interval=15))

        assert info.state == WorkState.ENQUEUED
        assert info.next_run_time is not None
        jobs = engine.scheduler.get_jobs()
        assert [job.id for job in jobs] == ["ReminderSync"]
        assert jobs[0].trigger.interval == timedelta(minutes=15)

    def test_enqueue_again_updates_in_place(self, engine):
        first = engine.enqueue_or_replace(make_request(interval=15))
        second = engine.enqueue_or_replace(make_request(interval=45))

        assert second.id == first.id
        assert second.interval_minutes == 45
        jobs = engine.scheduler.get_jobs()
        assert len(jobs) == 1
        assert jobs[0].trigger.interval == timedelta(minutes=45)

    def test_query_unknown_work(self, engine):
        assert engine.query_status("unknown") is None


class TestRuns:

    def test_successful_run(self, engine):
        work = MagicMock(return_value=WorkResult.success({"status": "completed", "sync_count": 1}))
        engine.enqueue_or_replace(make_request(work))

        info = engine.run_now("ReminderSync")

        work.assert_called_once()
        assert info.state == WorkState.ENQUEUED
        assert info.last_run_state == WorkState.SUCCEEDED
        assert info.run_attempt_count == 0
        assert info.output_data["status"] == "completed"

    def test_retry_schedules_backoff_and_counts_attempts(self, engine):
        work = MagicMock(return_value=WorkResult.retry())
        engine.enqueue_or_replace(make_request(work))

        info = engine.run_now("ReminderSync")

        assert info.run_attempt_count == 1
        assert info.last_run_state == WorkState.FAILED
        assert info.state == WorkState.ENQUEUED
        assert engine.scheduler.get_job("ReminderSync" + RETRY_JOB_SUFFIX) is not None

        assert engine.run_now("ReminderSync").run_attempt_count == 2

        work.return_value = WorkResult.success({"status": "completed"})
        assert engine.run_now("ReminderSync").run_attempt_count == 0

    def test_attempt_ceiling_stops_retries(self):
        engine = APSchedulerEngine(
            constraint_checker=AlwaysSatisfied(),
            backoff_policy=BackoffPolicy(max_attempts=0)
        )
        try:
            engine.enqueue_or_replace(make_request(MagicMock(return_value=WorkResult.retry())))
            engine.run_now("ReminderSync")
            assert engine.scheduler.get_job("ReminderSync" + RETRY_JOB_SUFFIX) is None
        finally:
            engine.shutdown(wait=False)

    def test_unhandled_error_marks_run_failed(self, engine):
        engine.enqueue_or_replace(make_request(MagicMock(side_effect=RuntimeError("boom"))))

        info = engine.run_now("ReminderSync")

        assert info.state == WorkState.ENQUEUED
        assert info.last_run_state == WorkState.FAILED

    def test_unmet_constraints_defer_work(self):
        checker = MagicMock(spec=ConstraintChecker)
        checker.unmet.return_value = ["network"]
        engine = APSchedulerEngine(constraint_checker=checker)
        work = MagicMock(return_value=WorkResult.success())
        try:
            engine.enqueue_or_replace(make_request(work))
            info = engine.run_now("ReminderSync")

            work.assert_not_called()
            assert info.state == WorkState.ENQUEUED
            assert info.last_run_state is None
        finally:
            engine.shutdown(wait=False)

    def test_failing_constraint_check_defers_work(self):
        checker = MagicMock(spec=ConstraintChecker)
        checker.unmet.side_effect = OSError("probe crashed")
        engine = APSchedulerEngine(constraint_checker=checker)
        work = MagicMock(return_value=WorkResult.success())
        try:
            engine.enqueue_or_replace(make_request(work))
            info = engine.run_now("ReminderSync")

            work.assert_not_called()
            assert info.state == WorkState.ENQUEUED
        finally:
            engine.shutdown(wait=False)


class SlowConstraintChecker(ConstraintChecker):
    """Satisfies every constraint, but only after a delay."""

    def unmet(self, constraints):
        time.sleep(0.2)
        return []


class TestOverlappingFirings:

    def test_same_work_never_runs_twice_at_once(self):
        engine = APSchedulerEngine(constraint_checker=SlowConstraintChecker())
        guard = threading.Lock()
        active = [0]
        peak = []

        def work():
            with guard:
                active[0] += 1
                peak.append(active[0])
            time.sleep(0.05)
            with guard:
                active[0] -= 1
            return WorkResult.success()

        try:
            engine.enqueue_or_replace(make_request(work))
            threads = [threading.Thread(target=engine.run_now, args=("ReminderSync",)) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=5)

            assert peak == [1]
            assert engine.query_status("ReminderSync").state == WorkState.ENQUEUED
        finally:
            engine.shutdown(wait=False)


class TestCancel:

    def test_cancel_removes_jobs(self, engine):
        engine.enqueue_or_replace(make_request(MagicMock(return_value=WorkResult.retry())))
        engine.run_now("ReminderSync")

        assert engine.cancel("ReminderSync") is True

        assert engine.scheduler.get_jobs() == []
        info = engine.query_status("ReminderSync")
        assert info.state == WorkState.CANCELLED
        assert info.next_run_time is None

    def test_cancel_is_idempotent(self, engine):
        assert engine.cancel("ReminderSync") is False
        engine.enqueue_or_replace(make_request())
        assert engine.cancel("ReminderSync") is True
        assert engine.cancel("ReminderSync") is False

    def test_cancelled_work_does_not_run(self, engine):
        work = MagicMock(return_value=WorkResult.success())
        engine.enqueue_or_replace(make_request(work))
        engine.cancel("ReminderSync")

        engine.run_now("ReminderSync")

        work.assert_not_called()


class TestBackoffPolicy:

    def test_exponential_delays_are_capped(self):
        policy = BackoffPolicy(initial_seconds=30, multiplier=2, max_seconds=100)
        assert policy.delay_for(1) == 30
        assert policy.delay_for(2) == 60
        assert policy.delay_for(3) == 100

    def test_unlimited_attempts_by_default(self):
        assert BackoffPolicy().allows(1000)
        assert not BackoffPolicy(max_attempts=3).allows(4)


class TestConstraintChecker:

    def test_storage_headroom(self):
        checker = ConstraintChecker(min_free_storage_mb=100)
        with patch("remindersync.scheduler.constraints.psutil.disk_usage") as disk_usage:
            disk_usage.return_value = MagicMock(free=50 * 1024 * 1024)
            assert checker.is_storage_not_low() is False

            disk_usage.return_value = MagicMock(free=500 * 1024 * 1024)
            assert checker.is_storage_not_low() is True

    def test_network_probe_failure(self):
        checker = ConstraintChecker()
        with patch("remindersync.scheduler.constraints.socket.socket") as socket_cls:
            socket_cls.return_value.connect.side_effect = OSError("unreachable")
            assert checker.is_network_available() is False
            socket_cls.return_value.close.assert_called_once()

    def test_unmet_lists_failed_constraints(self):
        checker = ConstraintChecker()
        with patch.object(checker, "is_network_available", return_value=False), \
                patch.object(checker, "is_storage_not_low", return_value=True):
            assert checker.unmet(SyncConstraints()) == ["network"]
            assert checker.unmet(SyncConstraints(require_network=False)) == []
            assert checker.unmet(SyncConstraints(require_network=False, require_charging=True)) == ["charging"]

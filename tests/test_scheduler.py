"""Tests for the daily tick."""

import pytest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from budgety.config import SchedulerSettings
from budgety.jobs import DailyJobRunner, local_today, seconds_until_next_midnight
from budgety.models.audit import AuditEventType
from budgety.services.storage import InMemoryStorage, StorageUnavailableError
from tests.conftest import run

KOLKATA = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def scheduler_settings():
    return SchedulerSettings(timezone="Asia/Kolkata", job_name="recurring-expenses", enabled=False)


def _events(storage, event_type):
    return [e for e in storage.audit_events if e.event_type == event_type]


class TestLocalClock:

    def test_local_date_crosses_utc_midnight(self):
        # 19:00 UTC is 00:30 the next day in Kolkata
        now = datetime(2026, 3, 9, 19, 0, tzinfo=timezone.utc)
        assert local_today(now, KOLKATA) == date(2026, 3, 10)
        assert local_today(now, ZoneInfo("UTC")) == date(2026, 3, 9)

    def test_naive_datetime_is_utc(self):
        assert local_today(datetime(2026, 3, 9, 19, 0), KOLKATA) == date(2026, 3, 10)

    def test_seconds_until_midnight(self):
        now = datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc)
        assert seconds_until_next_midnight(now, KOLKATA) == 1800.0

    def test_at_midnight_waits_a_full_day(self):
        now = datetime(2026, 3, 10, 0, 0, tzinfo=KOLKATA)
        assert seconds_until_next_midnight(now, KOLKATA) == 86400.0


class TestDailyJobRunner:

    def test_first_tick_runs(self, storage, scheduler_settings):
        runner = DailyJobRunner(storage, settings=scheduler_settings)

        summary = run(runner.run_once(datetime(2026, 3, 9, 19, 0, tzinfo=timezone.utc)))

        assert summary is not None
        assert summary.run_date == date(2026, 3, 10)
        assert ("recurring-expenses", "2026-03-10") in storage.job_locks
        completed = _events(storage, AuditEventType.TICK_COMPLETED)
        assert len(completed) == 1
        assert completed[0].details["materialized"] == 0
        assert completed[0].correlation_id == summary.correlation_id

    def test_second_tick_same_day_is_skipped(self, storage, scheduler_settings):
        first = DailyJobRunner(storage, settings=scheduler_settings)
        second = DailyJobRunner(storage, settings=scheduler_settings)
        now = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)

        assert run(first.run_once(now)) is not None
        assert run(second.run_once(now)) is None

        assert len(_events(storage, AuditEventType.TICK_STARTED)) == 1
        skipped = _events(storage, AuditEventType.TICK_SKIPPED)
        assert len(skipped) == 1
        assert skipped[0].details["run_date"] == "2026-03-10"

    def test_next_day_runs_again(self, storage, scheduler_settings):
        runner = DailyJobRunner(storage, settings=scheduler_settings)
        assert run(runner.run_once(datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc))) is not None
        assert run(runner.run_once(datetime(2026, 3, 11, 6, 0, tzinfo=timezone.utc))) is not None

    def test_lock_failure_is_audited_not_raised(self, scheduler_settings):
        class NoLockStorage(InMemoryStorage):
            async def acquire(self, job_name, run_key):
                raise StorageUnavailableError("database is locked")

        storage = NoLockStorage()
        runner = DailyJobRunner(storage, settings=scheduler_settings)

        assert run(runner.run_once(datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc))) is None

        errors = _events(storage, AuditEventType.SYSTEM_ERROR)
        assert len(errors) == 1
        assert errors[0].details["job_name"] == "recurring-expenses"
        assert _events(storage, AuditEventType.TICK_STARTED) == []

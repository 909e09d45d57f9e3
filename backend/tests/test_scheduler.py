"""
Auto-close scheduler tests.

The business timezone in tests is America/Guatemala (UTC-6, no DST) and the
daily close runs at 20:00 local, i.e. 02:00 UTC of the next calendar day.
"""

import threading
from datetime import date, datetime, timezone

import pytest

from perla.extensions import db
from perla.models import CashDailySummary, PayrollAccrual
from perla.scheduler import AutoCloseScheduler
from perla.services import cash_service, closure_service


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class _Recorder:
    """close_day stand-in that records dates and can fail on chosen ones."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self.called = threading.Event()

    def __call__(self, day):
        self.calls.append(day)
        self.called.set()
        if day in self.fail_on:
            raise RuntimeError("boom")
        return {"status": "closed"}


# =============================================================================
# TIMING
# =============================================================================


class TestNextRun:
    def test_one_hour_before_close(self, app):
        sched = AutoCloseScheduler(app, close_day=_Recorder())
        # 19:00 local on 2024-01-09
        assert sched.seconds_until_next_run(_utc(2024, 1, 10, 1, 0)) == 3600

    def test_after_close_waits_for_tomorrow(self, app):
        sched = AutoCloseScheduler(app, close_day=_Recorder())
        # 20:30 local on 2024-01-09 -> 20:00 local on 2024-01-10
        assert sched.seconds_until_next_run(_utc(2024, 1, 10, 2, 30)) == 84600

    def test_exactly_at_close_time_schedules_next_day(self, app):
        sched = AutoCloseScheduler(app, close_day=_Recorder())
        assert sched.seconds_until_next_run(_utc(2024, 1, 10, 2, 0)) == 86400

    def test_scheduled_close_uses_business_date(self, app):
        recorder = _Recorder()
        sched = AutoCloseScheduler(app, close_day=recorder)

        # 03:00 UTC on the 10th is still the 9th in Guatemala
        assert sched.run_scheduled_close(_utc(2024, 1, 10, 3, 0)) is True
        assert recorder.calls == [date(2024, 1, 9)]


# =============================================================================
# BACKFILL
# =============================================================================


class TestBackfill:
    def test_backfill_closes_previous_days_oldest_first(self, app):
        recorder = _Recorder()
        sched = AutoCloseScheduler(app, close_day=recorder)

        results = sched.run_backfill(_utc(2024, 1, 10, 18, 0))

        assert recorder.calls == [date(2024, 1, 7), date(2024, 1, 8), date(2024, 1, 9)]
        assert results == {"2024-01-07": True, "2024-01-08": True, "2024-01-09": True}

    def test_one_failing_date_does_not_stop_the_rest(self, app):
        recorder = _Recorder(fail_on={date(2024, 1, 8)})
        sched = AutoCloseScheduler(app, close_day=recorder)

        results = sched.run_backfill(_utc(2024, 1, 10, 18, 0))

        assert len(recorder.calls) == 3
        assert results == {"2024-01-07": True, "2024-01-08": False, "2024-01-09": True}

    def test_backfill_with_real_closure(self, app, worker):
        cash_service.add_cash_entry(
            entry_date="2024-01-08", kind="INCOME", description="venta", amount="50.00", actor=worker,
        )
        closure_service.close_day("2024-01-08", closed_by="admin@perla.test")
        cash_service.add_cash_entry(
            entry_date="2024-01-09", kind="INCOME", description="venta", amount="20.00", actor=worker,
        )
        db.session.commit()

        sched = AutoCloseScheduler(app)
        results = sched.run_backfill(_utc(2024, 1, 10, 18, 0))
        db.session.expire_all()

        assert all(results.values())
        summaries = {
            s.summary_date: s for s in db.session.query(CashDailySummary).all()
        }
        assert set(summaries) == {date(2024, 1, 7), date(2024, 1, 8), date(2024, 1, 9)}
        # Already closed days keep their closer and are not paid twice
        assert summaries[date(2024, 1, 8)].closed_by == "admin@perla.test"
        closed_early = summaries[date(2024, 1, 8)].to_dict()
        assert (closed_early["incomes"], closed_early["expenses"], closed_early["balance"]) == (
            "50.00", "0.00", "50.00",
        )
        assert summaries[date(2024, 1, 9)].closed_by == "system@auto-close"
        assert summaries[date(2024, 1, 7)].balance == 0
        assert db.session.query(PayrollAccrual).filter_by(user_id=worker.id).count() == 2

    def test_zero_backfill_days(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "AUTO_CLOSE_BACKFILL_DAYS", 0)
        recorder = _Recorder()
        sched = AutoCloseScheduler(app, close_day=recorder)

        assert sched.run_backfill(_utc(2024, 1, 10, 18, 0)) == {}
        assert recorder.calls == []


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestLifecycle:
    def test_disabled_scheduler_does_not_start(self, app):
        sched = AutoCloseScheduler(app, close_day=_Recorder())
        assert sched.enabled is False
        assert sched.start() is False
        assert sched.is_running is False

    def test_start_backfills_then_waits_until_stopped(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "AUTO_CLOSE_ENABLED", True)
        monkeypatch.setitem(app.config, "AUTO_CLOSE_BACKFILL_DAYS", 1)
        recorder = _Recorder()
        sched = AutoCloseScheduler(app, close_day=recorder, clock=lambda: _utc(2024, 1, 10, 18, 0))

        assert sched.start() is True
        try:
            assert recorder.called.wait(timeout=5)
            assert sched.is_running is True
        finally:
            sched.stop(timeout=5)

        assert sched.is_running is False
        assert recorder.calls == [date(2024, 1, 9)]

    def test_app_owns_an_unstarted_scheduler(self, app):
        sched = app.extensions["auto_close"]
        assert isinstance(sched, AutoCloseScheduler)
        assert sched.is_running is False

    def test_bad_timezone_rejected(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "BUSINESS_TZ", "Mars/Olympus_Mons")
        with pytest.raises(ValueError):
            AutoCloseScheduler(app, close_day=_Recorder())

    @pytest.mark.parametrize("hour,minute", [(24, 0), (-1, 0), (20, 60)])
    def test_bad_close_time_rejected(self, app, monkeypatch, hour, minute):
        monkeypatch.setitem(app.config, "AUTO_CLOSE_HOUR", hour)
        monkeypatch.setitem(app.config, "AUTO_CLOSE_MINUTE", minute)
        with pytest.raises(ValueError):
            AutoCloseScheduler(app, close_day=_Recorder())

"""
Attendance tests: check-in/out log and the daily task tally.

The business timezone in tests is America/Guatemala (UTC-6), so the business
date 2024-01-10 runs from 06:00 UTC on the 10th to 06:00 UTC on the 11th.
"""

from datetime import datetime

import pytest

from perla.services import attendance_service, event_service
from perla.validation import NotFoundError, ValidationError


NOON_LOCAL = datetime(2024, 1, 10, 18, 0)


# =============================================================================
# CHECK-IN / CHECK-OUT
# =============================================================================


class TestCheck:
    def test_summary_counts_the_business_day_only(self, db_session):
        # 23:00 local on the 9th
        attendance_service.check(name="Ana", kind="IN", at=datetime(2024, 1, 10, 5, 0))
        attendance_service.check(name="Ana", kind="IN", at=datetime(2024, 1, 10, 14, 0))
        attendance_service.check(name="Ana", kind="OUT", note="fin", at=datetime(2024, 1, 10, 23, 30))
        attendance_service.check(name="Luis", kind="IN", at=datetime(2024, 1, 10, 14, 5))

        summary = attendance_service.summary("Ana", now=NOON_LOCAL)

        assert summary["has_in_today"] is True
        assert summary["today"] == {"in": 1, "out": 1}
        assert summary["latest"]["kind"] == "OUT"
        assert summary["latest"]["timestamp"] == "2024-01-10T23:30:00Z"

    def test_summary_without_records(self, db_session):
        summary = attendance_service.summary("Nadie", now=NOON_LOCAL)
        assert summary == {
            "name": "Nadie",
            "has_in_today": False,
            "latest": None,
            "today": {"in": 0, "out": 0},
        }

    def test_only_out_today(self, db_session):
        attendance_service.check(name="Ana", kind="OUT", at=datetime(2024, 1, 10, 7, 0))
        summary = attendance_service.summary("Ana", now=NOON_LOCAL)
        assert summary["has_in_today"] is False
        assert summary["today"] == {"in": 0, "out": 1}

    @pytest.mark.parametrize("name,kind", [("", "IN"), ("Ana", "LUNCH"), ("Ana", None)])
    def test_invalid_check(self, db_session, name, kind):
        with pytest.raises(ValidationError):
            attendance_service.check(name=name, kind=kind)

    def test_summary_requires_name(self, db_session):
        with pytest.raises(ValidationError):
            attendance_service.summary("  ")

    def test_check_records_an_event(self, db_session):
        record = attendance_service.check(name="Ana", kind="IN")

        events = event_service.list_events(category="attendance")
        assert [e.event_type for e in events] == ["attendance:created"]
        assert events[0].entity_id == record.id
        assert attendance_service.list_records(name="Ana")[0].id == record.id


# =============================================================================
# DAILY TALLY
# =============================================================================


class TestDailyTally:
    def test_second_registration_returns_stored_row(self, worker):
        first, created = attendance_service.register_daily(
            user_id=worker.id, day="2024-01-10", completed_tasks=3, total_tasks=5,
        )
        again, created_again = attendance_service.register_daily(
            user_id=worker.id, day="2024-01-10", completed_tasks=9, total_tasks=9,
        )

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert again.to_dict()["completed_tasks"] == 3
        assert len(attendance_service.list_daily(user_id=worker.id)) == 1

    def test_dates_and_users_are_independent(self, worker, other_worker):
        attendance_service.register_daily(user_id=worker.id, day="2024-01-10")
        attendance_service.register_daily(user_id=worker.id, day="2024-01-11")
        attendance_service.register_daily(user_id=other_worker.id, day="2024-01-10")

        assert len(attendance_service.list_daily()) == 3
        ranged = attendance_service.list_daily(from_date="2024-01-11", to_date="2024-01-11")
        assert [r.user_id for r in ranged] == [worker.id]

    @pytest.mark.parametrize("completed,total", [(-1, 0), (0, -1), (True, 1), ("2", 3)])
    def test_counts_must_be_non_negative_ints(self, worker, completed, total):
        with pytest.raises(ValidationError):
            attendance_service.register_daily(
                user_id=worker.id, day="2024-01-10", completed_tasks=completed, total_tasks=total,
            )

    def test_unknown_user_and_bad_date(self, worker):
        with pytest.raises(NotFoundError):
            attendance_service.register_daily(user_id=9999, day="2024-01-10")
        with pytest.raises(ValidationError):
            attendance_service.register_daily(user_id=worker.id, day="10/01/2024")

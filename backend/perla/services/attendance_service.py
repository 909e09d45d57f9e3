# Overview: Worker check-in/check-out log and the per-day task tally.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import AttendanceRecord, DailyAttendance, User
from ..models.attendance import ATTENDANCE_IN, ATTENDANCE_OUT
from ..time_utils import business_day_bounds, business_today, utcnow
from ..validation import NotFoundError, ValidationError, require_date
from .concurrency import get_or_create, run_with_retry
from .event_service import record_event


# =============================================================================
# CHECK-IN / CHECK-OUT
# =============================================================================

def list_records(*, name: str | None = None, limit: int = 200) -> list[AttendanceRecord]:
    """Newest first."""
    q = db.session.query(AttendanceRecord)
    if name:
        q = q.filter(AttendanceRecord.name == name.strip())
    limit = max(1, min(limit or 200, 1000))
    return q.order_by(AttendanceRecord.timestamp.desc(), AttendanceRecord.id.desc()).limit(limit).all()


def check(*, name: str, kind: str, note: str | None = None, at: datetime | None = None) -> AttendanceRecord:
    """Append one IN/OUT record stamped with the server clock (or `at`, UTC-naive)."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if kind not in (ATTENDANCE_IN, ATTENDANCE_OUT):
        raise ValidationError('kind must be "IN" or "OUT"')

    record = AttendanceRecord(
        name=name,
        kind=kind,
        note=(note or "").strip()[:255] or None,
        timestamp=at or utcnow(),
    )
    db.session.add(record)
    db.session.flush()

    record_event(
        event_type="attendance:created",
        event_category="attendance",
        entity_type="attendance_record",
        entity_id=record.id,
        actor=name,
        payload={"kind": kind},
    )
    db.session.commit()
    return record


def summary(name: str, *, now: datetime | None = None) -> dict:
    """
    Today's IN/OUT counts and the latest record for one worker.

    "Today" is the current business date in BUSINESS_TZ.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    tz_name = current_app.config["BUSINESS_TZ"]
    start, end = business_day_bounds(tz_name, business_today(tz_name, now))

    today = {ATTENDANCE_IN: 0, ATTENDANCE_OUT: 0}
    todays = (
        db.session.query(AttendanceRecord.kind)
        .filter(
            AttendanceRecord.name == name,
            AttendanceRecord.timestamp >= start,
            AttendanceRecord.timestamp < end,
        )
        .all()
    )
    for (kind,) in todays:
        today[kind] = today.get(kind, 0) + 1

    latest = (
        db.session.query(AttendanceRecord)
        .filter(AttendanceRecord.name == name)
        .order_by(AttendanceRecord.timestamp.desc(), AttendanceRecord.id.desc())
        .first()
    )

    return {
        "name": name,
        "has_in_today": today[ATTENDANCE_IN] > 0,
        "latest": latest.to_dict() if latest else None,
        "today": {"in": today[ATTENDANCE_IN], "out": today[ATTENDANCE_OUT]},
    }


# =============================================================================
# DAILY TALLY
# =============================================================================

def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be an integer >= 0")
    return value


def register_daily(*, user_id: int, day, completed_tasks=0, total_tasks=0) -> tuple[DailyAttendance, bool]:
    """
    Record a worker's task tally for a date.

    Returns (row, created). A second registration for the same (user, date)
    returns the stored row unchanged.
    """
    day = require_date(day)
    completed_tasks = _non_negative_int(completed_tasks, "completed_tasks")
    total_tasks = _non_negative_int(total_tasks, "total_tasks")
    if db.session.get(User, user_id) is None:
        raise NotFoundError("User not found")

    def _register():
        row, created = get_or_create(
            DailyAttendance,
            defaults={"completed_tasks": completed_tasks, "total_tasks": total_tasks},
            user_id=user_id,
            attendance_date=day,
        )
        db.session.commit()
        return row, created

    return run_with_retry(_register, retry_on_conflict=True)


def list_daily(*, user_id: int | None = None, from_date=None, to_date=None) -> list[DailyAttendance]:
    q = db.session.query(DailyAttendance)
    if user_id is not None:
        q = q.filter(DailyAttendance.user_id == user_id)
    if from_date is not None:
        q = q.filter(DailyAttendance.attendance_date >= require_date(from_date, field="from"))
    if to_date is not None:
        q = q.filter(DailyAttendance.attendance_date <= require_date(to_date, field="to"))
    return q.order_by(DailyAttendance.attendance_date.desc(), DailyAttendance.user_id.asc()).all()

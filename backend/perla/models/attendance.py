from __future__ import annotations

from ..extensions import db
from perla.time_utils import to_utc_z, to_iso_date


ATTENDANCE_IN = "IN"
ATTENDANCE_OUT = "OUT"


class AttendanceRecord(db.Model):
    """
    One check-in or check-out, keyed by the worker's display name.

    timestamp is set by the server (UTC) when the record is written.
    """
    __tablename__ = "attendance_records"
    __table_args__ = (
        db.Index("ix_attendance_records_name_timestamp", "name", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    kind = db.Column(db.String(8), nullable=False)  # IN, OUT
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "timestamp": to_utc_z(self.timestamp),
            "note": self.note,
        }


class DailyAttendance(db.Model):
    """Per-worker daily task tally; at most one row per (user, date)."""
    __tablename__ = "daily_attendance"
    __table_args__ = (
        db.UniqueConstraint("user_id", "attendance_date", name="uq_daily_attendance_user_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    attendance_date = db.Column(db.Date, nullable=False, index=True)
    completed_tasks = db.Column(db.Integer, nullable=False, default=0)
    total_tasks = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": to_iso_date(self.attendance_date),
            "completed_tasks": self.completed_tasks,
            "total_tasks": self.total_tasks,
            "created_at": to_utc_z(self.created_at),
        }

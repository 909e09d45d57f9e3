from __future__ import annotations

from ..extensions import db
from perla.time_utils import to_utc_z


TASK_PENDING = "PENDING"
TASK_IN_PROGRESS = "IN_PROGRESS"
TASK_COMPLETED = "COMPLETED"
TASK_OBJECTED = "OBJECTED"

TASK_STATUSES = (TASK_PENDING, TASK_IN_PROGRESS, TASK_COMPLETED, TASK_OBJECTED)


class Task(db.Model):
    """
    Field job for one customer, assigned to one worker.

    Status moves PENDING -> IN_PROGRESS -> COMPLETED, or to OBJECTED when the
    worker refuses it; see tasks_service for the transition rules.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_assignee_status", "assigned_to_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer = db.relationship("Customer", lazy="joined")

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id], lazy="joined")
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = db.relationship("User", foreign_keys=[created_by_id], lazy="joined")

    status = db.Column(db.String(16), nullable=False, default=TASK_PENDING)
    contact_phone = db.Column(db.String(50), nullable=False)

    objection_reason = db.Column(db.Text, nullable=True)
    final_comment = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        c = self.customer
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "contact_phone": self.contact_phone,
            "customer": {
                "id": c.id,
                "name": c.name,
                "address": c.address,
                "phone": c.phone,
                "ip_address": c.ip_address,
                "latitude": c.latitude,
                "longitude": c.longitude,
            } if c else None,
            "assigned_to": _user_ref(self.assigned_to),
            "created_by": _user_ref(self.created_by),
            "objection_reason": self.objection_reason,
            "final_comment": self.final_comment,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def _user_ref(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}

from __future__ import annotations

import json

from ..extensions import db
from perla.time_utils import to_utc_z, to_iso_date


class ActivityEvent(db.Model):
    """
    Append-only "this happened" feed for connected clients.

    Rows are written in the same DB transaction as the change they describe and
    are never updated or deleted. Clients poll by id (after_id) to stay current.
    """
    __tablename__ = "activity_events"
    __table_args__ = (
        db.Index("ix_activity_events_category_created", "event_category", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., cash:day-closed, inventory:movement
    event_category = db.Column(db.String(32), nullable=False, index=True)  # cash, inventory, customers, attendance, tasks

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    actor = db.Column(db.String(255), nullable=True)  # system identities have no user row

    business_date = db.Column(db.Date, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "actor": self.actor,
            "business_date": to_iso_date(self.business_date),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": json.loads(self.payload) if self.payload else None,
        }

from __future__ import annotations

import json

from ..extensions import db
from perla.time_utils import to_utc_z
from perla.validation import money_str


CUSTOMER_ACTIVE = "active"


class InternetPlan(db.Model):
    """Service plan a customer subscribes to. Names are unique."""
    __tablename__ = "internet_plans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    speed = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": money_str(self.price),
            "speed": self.speed,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(db.Model):
    """
    Subscriber record.

    (name, address) identifies a customer for import de-duplication; the pair
    is compared case-insensitively and is not a database constraint because
    manual edits may legitimately collide.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name_address", "name", "address"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(50), nullable=True)

    # Free-form coordinates as captured in the field (may be blank)
    latitude = db.Column(db.String(32), nullable=True)
    longitude = db.Column(db.String(32), nullable=True)

    plan_id = db.Column(db.Integer, db.ForeignKey("internet_plans.id"), nullable=True, index=True)
    plan = db.relationship("InternetPlan", lazy="joined")

    status = db.Column(db.String(32), nullable=False, default=CUSTOMER_ACTIVE)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "ip_address": self.ip_address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "plan": {"id": self.plan.id, "name": self.plan.name} if self.plan else None,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerConflict(db.Model):
    """
    CSV import row that was not inserted, with the reason and the raw row.

    Append-only review log; rows are never turned into customers automatically.
    """
    __tablename__ = "customer_conflicts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, default="")
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    ip_address = db.Column(db.String(50), nullable=True)
    latitude = db.Column(db.String(32), nullable=True)
    longitude = db.Column(db.String(32), nullable=True)
    plan_name = db.Column(db.String(128), nullable=True)
    reason = db.Column(db.String(255), nullable=False)
    row_data = db.Column(db.Text, nullable=True)  # JSON list of the raw cells

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "ip_address": self.ip_address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "plan_name": self.plan_name,
            "reason": self.reason,
            "row_data": json.loads(self.row_data) if self.row_data else None,
            "created_at": to_utc_z(self.created_at),
        }

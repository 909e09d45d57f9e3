from __future__ import annotations

from ..extensions import db
from perla.time_utils import to_utc_z


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"


class InventoryItem(db.Model):
    """
    Stock-keeping item (routers, antennas, cable spools...).

    SKU is globally unique. min_stock is the threshold at or below which the
    item is reported as low stock.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        db.Index("ix_inventory_items_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, default="")
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "min_stock": self.min_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    location = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }


class StockLevel(db.Model):
    """
    Current quantity of one item in one warehouse.

    Created lazily (quantity 0) by the first movement against the pair and
    mutated only by inventory_service.apply_movement. quantity never goes below 0.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("item_id", "warehouse_id", name="uq_stock_levels_item_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_levels_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("InventoryItem", backref=db.backref("stock_levels", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("stock_levels", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "warehouse_id": self.warehouse_id,
            "quantity": self.quantity,
            "item": self.item.to_dict() if self.item else None,
            "warehouse": self.warehouse.to_dict() if self.warehouse else None,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock movement (audit trail). Never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_item_created", "item_id", "created_at"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    kind = db.Column(db.String(8), nullable=False, index=True)  # IN, OUT
    quantity = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text, nullable=False, default="")

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem", backref=db.backref("movements", lazy=True))
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "warehouse_id": self.warehouse_id,
            "kind": self.kind,
            "quantity": self.quantity,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func, update

from ..extensions import db
from ..models import InventoryItem, StockLevel, StockMovement, Warehouse
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..validation import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    enforce_rules_item,
)
from .concurrency import get_or_create, run_with_retry
from .event_service import record_event
"""
Perla Inventory Invariants (authoritative)

Stock model:
- StockLevel holds the current quantity per (item, warehouse); one row per pair.
- A StockLevel row is created lazily (quantity 0) by the first movement that
  targets the pair. Nothing else creates or mutates StockLevel rows.
- quantity >= 0 at all times. An OUT larger than the quantity on hand is
  rejected as a whole (no partial fulfillment) and leaves the row untouched.

Movements:
- StockMovement is append-only (audit trail): never updated or deleted.
- The StockLevel update, the StockMovement insert and the activity event are
  committed together. Quantities change only through a relative UPDATE; an OUT
  carries its guard in the WHERE clause (quantity >= requested), so it either
  matches the row or touches nothing. A concurrent lazy insert of the same
  pair loses on the unique key and is retried.

Deletion:
- Items and warehouses cannot be deleted while stock rows or movement history
  reference them (history is never orphaned).
"""

ITEM_MUTABLE_FIELDS = {"sku", "name", "category", "min_stock"}


# =============================================================================
# ITEMS
# =============================================================================

def _get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return item


def _require_text(patch: dict, field: str) -> None:
    value = patch.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(InventoryItem).filter(InventoryItem.sku == sku)
    if exclude_id is not None:
        q = q.filter(InventoryItem.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists")


def list_items(*, category: str | None = None) -> list[InventoryItem]:
    q = db.session.query(InventoryItem)
    if category:
        q = q.filter(InventoryItem.category == category)
    return q.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def get_item(item_id: int) -> InventoryItem:
    return _get_item(item_id)


def create_item(*, patch: dict) -> InventoryItem:
    """
    Create an item from a validated patch dict.

    Raises:
        ValidationError: blank sku/name or negative min_stock
        ConflictError: SKU already exists
    """
    _require_text(patch, "sku")
    _require_text(patch, "name")
    enforce_rules_item(patch)
    _ensure_sku_free(patch["sku"])

    item = InventoryItem(category="", min_stock=0)
    for k, v in patch.items():
        if k in ITEM_MUTABLE_FIELDS:
            setattr(item, k, v)

    db.session.add(item)
    db.session.commit()
    return item


def update_item(item_id: int, *, patch: dict) -> InventoryItem:
    item = _get_item(item_id)

    for field in ("sku", "name"):
        if field in patch:
            _require_text(patch, field)
    enforce_rules_item(patch)
    if "sku" in patch and patch["sku"] != item.sku:
        _ensure_sku_free(patch["sku"], exclude_id=item.id)

    for k, v in patch.items():
        if k in ITEM_MUTABLE_FIELDS:
            setattr(item, k, v)

    db.session.commit()
    return item


def delete_item(item_id: int) -> None:
    """Hard delete; refused while stock rows or movements reference the item."""
    item = _get_item(item_id)

    has_stock = db.session.query(StockLevel.id).filter_by(item_id=item.id).first()
    has_history = db.session.query(StockMovement.id).filter_by(item_id=item.id).first()
    if has_stock or has_history:
        raise ConflictError("Item has stock or movement history and cannot be deleted")

    db.session.delete(item)
    db.session.commit()


# =============================================================================
# WAREHOUSES
# =============================================================================

def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.name.asc(), Warehouse.id.asc()).all()


def create_warehouse(*, name: str, location: str | None = None) -> Warehouse:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    wh = Warehouse(name=name, location=(location or "").strip() or None)
    db.session.add(wh)
    db.session.commit()
    return wh


def delete_warehouse(warehouse_id: int) -> None:
    wh = db.session.get(Warehouse, warehouse_id)
    if wh is None:
        raise NotFoundError("Warehouse not found")

    has_stock = db.session.query(StockLevel.id).filter_by(warehouse_id=wh.id).first()
    has_history = db.session.query(StockMovement.id).filter_by(warehouse_id=wh.id).first()
    if has_stock or has_history:
        raise ConflictError("Warehouse has stock and cannot be deleted")

    db.session.delete(wh)
    db.session.commit()


# =============================================================================
# MOVEMENTS
# =============================================================================

def apply_movement(
    *,
    item_id: int,
    warehouse_id: int | None,
    kind: str,
    quantity: int,
    note: str | None = None,
    actor=None,
) -> StockMovement:
    """
    Apply one IN/OUT movement to the (item, warehouse) stock level.

    Returns the appended StockMovement.

    Raises:
        ValidationError: missing warehouse, bad kind, non-positive quantity
        NotFoundError: unknown item or warehouse
        InsufficientStockError: OUT larger than the quantity on hand
    """
    if warehouse_id is None:
        raise ValidationError("warehouse_id is required")
    if kind not in (MOVEMENT_IN, MOVEMENT_OUT):
        raise ValidationError('kind must be "IN" or "OUT"')
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    note = (note or "").strip()
    actor_id = actor.id if actor is not None else None
    actor_name = actor.display_name if actor is not None else None

    def _apply() -> StockMovement:
        item = db.session.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Item not found")
        warehouse = db.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise NotFoundError("Warehouse not found")

        level, _ = get_or_create(
            StockLevel,
            defaults={"quantity": 0},
            lock=True,
            item_id=item.id,
            warehouse_id=warehouse.id,
        )

        if kind == MOVEMENT_OUT:
            # Guard and decrement in one statement; the row is re-read afterwards
            stmt = (
                update(StockLevel)
                .where(StockLevel.id == level.id, StockLevel.quantity >= quantity)
                .values(quantity=StockLevel.quantity - quantity)
                .execution_options(synchronize_session=False)
            )
        else:
            stmt = (
                update(StockLevel)
                .where(StockLevel.id == level.id)
                .values(quantity=StockLevel.quantity + quantity)
                .execution_options(synchronize_session=False)
            )

        if db.session.execute(stmt).rowcount == 0:
            # Discard a lazily created row along with the rejected movement
            db.session.rollback()
            available = get_quantity(item_id, warehouse_id)
            raise InsufficientStockError(
                f"Insufficient stock: requested {quantity}, available {available}"
            )
        db.session.refresh(level)

        movement = StockMovement(
            item_id=item.id,
            warehouse_id=warehouse.id,
            kind=kind,
            quantity=quantity,
            note=note,
            created_by_user_id=actor_id,
        )
        db.session.add(movement)
        db.session.flush()

        record_event(
            event_type="inventory:movement",
            event_category="inventory",
            entity_type="stock_movement",
            entity_id=movement.id,
            actor_user_id=actor_id,
            actor=actor_name,
            note=note or None,
            payload={
                "item_id": item.id,
                "warehouse_id": warehouse.id,
                "kind": kind,
                "quantity": quantity,
                "stock": level.quantity,
            },
        )

        db.session.commit()
        return movement

    return run_with_retry(_apply, retry_on_conflict=True)


def list_movements(
    *,
    item_id: int | None = None,
    warehouse_id: int | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    """Newest first."""
    q = db.session.query(StockMovement)
    if item_id is not None:
        q = q.filter(StockMovement.item_id == item_id)
    if warehouse_id is not None:
        q = q.filter(StockMovement.warehouse_id == warehouse_id)
    limit = max(1, min(limit or 100, 1000))
    return q.order_by(StockMovement.id.desc()).limit(limit).all()


# =============================================================================
# STOCK QUERIES
# =============================================================================

def list_stock_levels(*, warehouse_id: int | None = None, item_id: int | None = None) -> list[StockLevel]:
    q = db.session.query(StockLevel)
    if warehouse_id is not None:
        q = q.filter(StockLevel.warehouse_id == warehouse_id)
    if item_id is not None:
        q = q.filter(StockLevel.item_id == item_id)
    return q.order_by(StockLevel.item_id.asc(), StockLevel.warehouse_id.asc()).all()


def get_quantity(item_id: int, warehouse_id: int) -> int:
    level = db.session.query(StockLevel).filter_by(item_id=item_id, warehouse_id=warehouse_id).first()
    return level.quantity if level is not None else 0


def low_stock_items() -> list[dict]:
    """
    Items whose total quantity across warehouses is at or below min_stock.

    Items without any stock row count as quantity 0.
    """
    totals = (
        db.session.query(
            StockLevel.item_id.label("item_id"),
            func.sum(StockLevel.quantity).label("total"),
        )
        .group_by(StockLevel.item_id)
        .subquery()
    )
    total_qty = func.coalesce(totals.c.total, 0)

    rows = (
        db.session.query(InventoryItem, total_qty)
        .outerjoin(totals, totals.c.item_id == InventoryItem.id)
        .filter(total_qty <= InventoryItem.min_stock)
        .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .all()
    )

    out = []
    for item, total in rows:
        d = item.to_dict()
        d["total_quantity"] = int(total or 0)
        out.append(d)
    return out

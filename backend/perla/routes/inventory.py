# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/perla/routes/inventory.py
"""
Inventory routes: items, warehouses, stock levels and movements.

SECURITY: All routes require authentication.
- Item and warehouse writes require ADMIN
- Movements can be posted by any authenticated user (field workers take stock out)
"""
from flask import Blueprint, jsonify, request, g

from ..models import InventoryItem, StockMovement
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_item,
    enforce_rules_movement,
    ValidationError,
)
from ..decorators import require_auth, require_role
from . import json_error

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "category", "min_stock"},
    required_on_create={"sku", "name"},
)

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "warehouse_id", "kind", "quantity"},
    required_on_create={"item_id", "kind", "quantity"},
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


# =============================================================================
# ITEMS
# =============================================================================

@inventory_bp.get("/items")
@require_auth
def list_items_route():
    items = inventory_service.list_items(category=request.args.get("category"))
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@inventory_bp.get("/items/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(item_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify(item.to_dict()), 200


@inventory_bp.post("/items")
@require_auth
@require_role("ADMIN")
def create_item_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
        enforce_rules_item(patch)
        item = inventory_service.create_item(patch=patch)
    except Exception as exc:
        return json_error(exc)

    return jsonify(item.to_dict()), 201


@inventory_bp.patch("/items/<int:item_id>")
@require_auth
@require_role("ADMIN")
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=True)
        item = inventory_service.update_item(item_id, patch=patch)
    except Exception as exc:
        return json_error(exc)

    return jsonify(item.to_dict()), 200


@inventory_bp.delete("/items/<int:item_id>")
@require_auth
@require_role("ADMIN")
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(item_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


# =============================================================================
# WAREHOUSES
# =============================================================================

@inventory_bp.get("/warehouses")
@require_auth
def list_warehouses_route():
    warehouses = inventory_service.list_warehouses()
    return jsonify({"items": [w.to_dict() for w in warehouses], "count": len(warehouses)}), 200


@inventory_bp.post("/warehouses")
@require_auth
@require_role("ADMIN")
def create_warehouse_route():
    payload = request.get_json(silent=True) or {}
    try:
        wh = inventory_service.create_warehouse(
            name=payload.get("name"),
            location=payload.get("location"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(wh.to_dict()), 201


@inventory_bp.delete("/warehouses/<int:warehouse_id>")
@require_auth
@require_role("ADMIN")
def delete_warehouse_route(warehouse_id: int):
    try:
        inventory_service.delete_warehouse(warehouse_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


# =============================================================================
# STOCK AND MOVEMENTS
# =============================================================================

@inventory_bp.get("/stocks")
@require_auth
def list_stocks_route():
    """
    Current stock levels.

    Query params:
    - warehouse_id: int (optional)
    - item_id: int (optional)
    """
    levels = inventory_service.list_stock_levels(
        warehouse_id=request.args.get("warehouse_id", type=int),
        item_id=request.args.get("item_id", type=int),
    )
    return jsonify({"items": [s.to_dict() for s in levels], "count": len(levels)}), 200


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    movements = inventory_service.list_movements(
        item_id=request.args.get("item_id", type=int),
        warehouse_id=request.args.get("warehouse_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200


@inventory_bp.post("/movements")
@require_auth
def create_movement_route():
    """
    Apply an IN/OUT movement.

    Body: {item_id, warehouse_id, kind: "IN"|"OUT", quantity, note?}

    Returns:
    - 201 with the movement and the resulting stock quantity
    - 400 missing warehouse / bad kind or quantity
    - 404 unknown item or warehouse
    - 409 insufficient stock (nothing applied)
    """
    payload = dict(request.get_json(silent=True) or {})
    note = payload.pop("note", None)

    try:
        if note is not None and not isinstance(note, str):
            raise ValidationError("note must be a string")
        patch = validate_payload(model=StockMovement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
        enforce_rules_movement(patch)
        movement = inventory_service.apply_movement(
            item_id=patch["item_id"],
            warehouse_id=patch["warehouse_id"],
            kind=patch["kind"],
            quantity=patch["quantity"],
            note=note,
            actor=g.current_user,
        )
    except Exception as exc:
        return json_error(exc)

    body = movement.to_dict()
    body["stock"] = inventory_service.get_quantity(movement.item_id, movement.warehouse_id)
    return jsonify(body), 201


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    items = inventory_service.low_stock_items()
    return jsonify({"items": items, "count": len(items)}), 200

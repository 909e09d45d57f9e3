# Overview: Flask API routes for customers, internet plans and CSV customer import.

"""
Customer routes.

- Any authenticated user can read customers (field workers need addresses)
- Writes, imports, conflicts and plans are ADMIN only
"""

from flask import Blueprint, request, jsonify, g

from ..services import customer_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role
from . import json_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
plans_bp = Blueprint("plans", __name__, url_prefix="/api/plans")


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = customer_service.list_customers(
        status=request.args.get("status"),
        search=request.args.get("q"),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/conflicts")
@require_auth
@require_role("ADMIN")
def list_conflicts_route():
    conflicts = customer_service.list_conflicts()
    return jsonify({"items": [c.to_dict() for c in conflicts], "count": len(conflicts)}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify(customer.to_dict()), 200


@customers_bp.post("")
@require_auth
@require_role("ADMIN")
def create_customer_route():
    """Body: {name, phone?, address?, ip_address?, latitude?, longitude?, status?, notes?, plan_id? | plan_name?}"""
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(patch=data)
    except Exception as exc:
        return json_error(exc)
    return jsonify(customer.to_dict()), 201


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_role("ADMIN")
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, patch=data)
    except Exception as exc:
        return json_error(exc)
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("ADMIN")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


@customers_bp.post("/import")
@require_auth
@require_role("ADMIN")
def import_customers_route():
    """
    Import customers from a CSV upload (multipart field "file") or a raw text/csv body.

    Returns {inserted, conflicts}.
    """
    try:
        if "file" in request.files:
            text = request.files["file"].stream.read().decode("utf-8-sig")
        else:
            text = request.get_data(as_text=True)
        if not text.strip():
            raise ValidationError("file is required")
        result = customer_service.import_customers_csv(text, actor=g.current_user)
    except UnicodeDecodeError:
        return jsonify({"error": "CSV must be UTF-8 encoded"}), 400
    except Exception as exc:
        return json_error(exc)
    return jsonify(result), 201


# =============================================================================
# PLANS
# =============================================================================

@plans_bp.get("")
@require_auth
@require_role("ADMIN")
def list_plans_route():
    plans = customer_service.list_plans()
    return jsonify({"items": [p.to_dict() for p in plans], "count": len(plans)}), 200


@plans_bp.post("")
@require_auth
@require_role("ADMIN")
def create_plan_route():
    data = request.get_json(silent=True) or {}
    try:
        plan = customer_service.create_plan(
            name=data.get("name"),
            price=data.get("price"),
            speed=data.get("speed"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(plan.to_dict()), 201

# Overview: Flask API routes for staff accounts (admin only).

from flask import Blueprint, request, jsonify

from ..models import User
from ..services import auth_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
)
from ..decorators import require_auth, require_role
from . import json_error

USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "role", "daily_salary", "is_active"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("ADMIN")
def list_users_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
@require_auth
@require_role("ADMIN")
def create_user_route():
    """
    Create a staff account.

    Body: {email, password, name?, role? (ADMIN|USER), daily_salary?}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            data.get("email"),
            data.get("password"),
            name=data.get("name"),
            role=data.get("role") or "USER",
            daily_salary=data.get("daily_salary"),
        )
    except Exception as exc:
        return json_error(exc)

    return jsonify(user.to_dict()), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_role("ADMIN")
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=USER_UPDATE_POLICY, partial=True)
        user = auth_service.update_user(user_id, patch)
    except Exception as exc:
        return json_error(exc)

    return jsonify(user.to_dict()), 200

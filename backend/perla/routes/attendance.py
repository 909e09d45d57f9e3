# Overview: Flask API routes for attendance check-in/out and the daily task tally.

from flask import Blueprint, request, jsonify, g

from ..services import attendance_service
from ..decorators import require_auth
from . import json_error


attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


@attendance_bp.get("")
@require_auth
def list_records_route():
    records = attendance_service.list_records(
        name=request.args.get("name"),
        limit=request.args.get("limit", default=200, type=int),
    )
    return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200


@attendance_bp.post("/check")
@require_auth
def check_route():
    """Body: {name?, kind: "IN"|"OUT", note?}. name defaults to the caller's display name."""
    data = request.get_json(silent=True) or {}
    try:
        record = attendance_service.check(
            name=data.get("name") or g.current_user.display_name,
            kind=data.get("kind"),
            note=data.get("note"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(record.to_dict()), 201


@attendance_bp.get("/summary")
@require_auth
def summary_route():
    try:
        data = attendance_service.summary(request.args.get("name", ""))
    except Exception as exc:
        return json_error(exc)
    return jsonify(data), 200


@attendance_bp.post("")
@require_auth
def register_daily_route():
    """
    Register a daily task tally.

    Body: {user_id?, date, completed_tasks, total_tasks}. Workers always
    register for themselves; admins may pass user_id.

    Returns 201 on first registration, 200 with the stored row afterwards.
    """
    data = request.get_json(silent=True) or {}
    user_id = data.get("user_id") if g.current_user.is_admin and data.get("user_id") else g.current_user.id
    try:
        row, created = attendance_service.register_daily(
            user_id=user_id,
            day=data.get("date"),
            completed_tasks=data.get("completed_tasks", 0),
            total_tasks=data.get("total_tasks", 0),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(row.to_dict()), 201 if created else 200


@attendance_bp.get("/daily")
@require_auth
def list_daily_route():
    user_id = request.args.get("user_id", type=int) if g.current_user.is_admin else g.current_user.id
    try:
        rows = attendance_service.list_daily(
            user_id=user_id,
            from_date=request.args.get("from"),
            to_date=request.args.get("to"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200

# Overview: Flask API routes for field task assignment.

"""
Task routes.

- Admins create, list, edit and delete any task
- Workers list their own tasks ("/mine") and update status/description of tasks assigned to them
"""

from flask import Blueprint, request, jsonify, g

from ..services import tasks_service
from ..decorators import require_auth, require_role
from . import json_error


tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.get("")
@require_auth
@require_role("ADMIN")
def list_tasks_route():
    try:
        tasks = tasks_service.list_tasks(
            status=request.args.get("status"),
            assigned_to_id=request.args.get("assigned_to_id", type=int),
            customer_id=request.args.get("customer_id", type=int),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": [t.to_dict() for t in tasks], "count": len(tasks)}), 200


@tasks_bp.get("/mine")
@require_auth
def my_tasks_route():
    try:
        tasks = tasks_service.list_tasks(
            status=request.args.get("status"),
            assigned_to_id=g.current_user.id,
            customer_id=request.args.get("customer_id", type=int),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": [t.to_dict() for t in tasks], "count": len(tasks)}), 200


@tasks_bp.post("")
@require_auth
@require_role("ADMIN")
def create_task_route():
    """Body: {title, customer_id, assigned_to_id, contact_phone, description?}"""
    data = request.get_json(silent=True) or {}
    try:
        task = tasks_service.create_task(
            title=data.get("title"),
            customer_id=data.get("customer_id"),
            assigned_to_id=data.get("assigned_to_id"),
            contact_phone=data.get("contact_phone"),
            description=data.get("description"),
            created_by=g.current_user,
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(task.to_dict()), 201


@tasks_bp.patch("/<int:task_id>")
@require_auth
def update_task_route(task_id: int):
    data = request.get_json(silent=True) or {}
    try:
        task = tasks_service.update_task(task_id, actor=g.current_user, patch=data)
    except Exception as exc:
        return json_error(exc)
    return jsonify(task.to_dict()), 200


@tasks_bp.delete("/<int:task_id>")
@require_auth
@require_role("ADMIN")
def delete_task_route(task_id: int):
    try:
        tasks_service.delete_task(task_id, actor=g.current_user)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200

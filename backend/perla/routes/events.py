# Overview: Read-only activity feed; clients poll with after_id.

from flask import Blueprint, request, jsonify

from ..services import event_service
from ..decorators import require_auth

events_bp = Blueprint("events", __name__, url_prefix="/api/events")


@events_bp.get("")
@require_auth
def list_events_route():
    """
    Events with id > after_id, oldest first.

    Query params:
    - after_id: int (optional) - last id the client has seen
    - category: "cash" | "inventory" | "customers" | "attendance" | "tasks" (optional)
    - limit: int (optional, default 200, max 500)
    """
    limit = max(1, min(request.args.get("limit", default=200, type=int), 500))
    events = event_service.list_events(
        after_id=request.args.get("after_id", type=int),
        category=request.args.get("category"),
        limit=limit,
    )
    last_id = events[-1].id if events else request.args.get("after_id", type=int)
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events), "last_id": last_id}), 200

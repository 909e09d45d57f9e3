# Overview: Flask API routes for cash cuts and daily closures; parses input and returns JSON responses.

# backend/perla/routes/finance.py
"""
Cash API Routes

WHY: Workers record what they collect and spend each day; an admin (or the
auto-close scheduler) closes the day, which freezes totals and accrues wages.

DESIGN:
- Dates are YYYY-MM-DD business dates; default is "today" in BUSINESS_TZ
- Non-admins only ever see and close their own cash (user_id is forced)
- Closing and reopening a day is ADMIN only

SECURITY:
- All routes require authentication
- close / reopen / salary-candidates require ADMIN
"""

from datetime import timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cash_service, closure_service, payroll_service
from ..validation import ValidationError, require_date
from ..decorators import require_auth, require_role
from perla.time_utils import business_today
from . import json_error


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")

DEFAULT_RANGE_DAYS = 30


def _today():
    return business_today(current_app.config["BUSINESS_TZ"])


def _scoped_user_id() -> int | None:
    """Admins may filter by any user (or none); everyone else sees only themselves."""
    if g.current_user.is_admin:
        return request.args.get("user_id", type=int)
    return g.current_user.id


def _range_args():
    end = require_date(request.args.get("to") or _today(), field="to")
    start = require_date(request.args.get("from") or (end - timedelta(days=DEFAULT_RANGE_DAYS)), field="from")
    return start, end


# =============================================================================
# CASH ENTRIES
# =============================================================================

@finance_bp.get("/cash")
@require_auth
def cash_cut_route():
    """
    Cash cut for one date.

    Query params:
    - date: YYYY-MM-DD (default: today in BUSINESS_TZ)
    - user_id: int (admins only; others always get their own entries)
    """
    try:
        cut = cash_service.get_cash_cut(request.args.get("date") or _today(), user_id=_scoped_user_id())
    except Exception as exc:
        return json_error(exc)
    return jsonify(cut), 200


@finance_bp.post("/cash")
@require_auth
def add_cash_entry_route():
    """
    Record an income or expense.

    Request body:
    {
        "entry_date": "2024-01-10",   (optional, default today)
        "kind": "INCOME" | "EXPENSE",
        "description": "Cobro cliente 1043",
        "amount": "150.00"
    }

    409 when the day (or the caller's own day) is already closed.
    """
    data = request.get_json(silent=True) or {}
    try:
        if "amount" not in data:
            raise ValidationError("amount is required")
        entry = cash_service.add_cash_entry(
            entry_date=data.get("entry_date") or _today(),
            kind=data.get("kind"),
            description=data.get("description"),
            amount=data.get("amount"),
            actor=g.current_user,
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(entry.to_dict()), 201


@finance_bp.get("/cash/totals")
@require_auth
def cash_totals_route():
    """Per-date totals recomputed from entries, newest first."""
    try:
        start, end = _range_args()
        rows = cash_service.compute_totals(start, end, created_by_id=_scoped_user_id())
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": rows, "count": len(rows)}), 200


@finance_bp.get("/cash/summaries")
@require_auth
def daily_summaries_route():
    try:
        start, end = _range_args()
        rows = cash_service.list_daily_summaries(start, end, user_id=_scoped_user_id())
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": rows, "count": len(rows)}), 200


# =============================================================================
# CLOSURES
# =============================================================================

@finance_bp.post("/cash/user-close")
@require_auth
def user_close_route():
    """A worker closes their own day. Idempotent."""
    data = request.get_json(silent=True) or {}
    try:
        closure, created = cash_service.user_close_day(data.get("date") or _today(), user=g.current_user)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"closure": closure.to_dict(), "created": created}), 201 if created else 200


@finance_bp.post("/cash/close")
@require_auth
@require_role("ADMIN")
def close_day_route():
    """
    Close a business date (recompute, summary, user closures, accruals).

    Request body:
    {
        "date": "2024-01-10",          (optional, default today)
        "include_user_ids": [3, 7]     (optional; accrue only these workers)
    }
    """
    data = request.get_json(silent=True) or {}
    include = data.get("include_user_ids")
    try:
        if include is not None and (
            not isinstance(include, list)
            or not all(isinstance(i, int) and not isinstance(i, bool) for i in include)
        ):
            raise ValidationError("include_user_ids must be a list of integers")
        result = closure_service.close_day(
            data.get("date") or _today(),
            closed_by=g.current_user.email,
            include_user_ids=include,
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(result), 200


@finance_bp.post("/cash/reopen")
@require_auth
@require_role("ADMIN")
def reopen_day_route():
    data = request.get_json(silent=True) or {}
    try:
        if not data.get("date"):
            raise ValidationError("date is required")
        result = closure_service.reopen_day(data["date"], actor=g.current_user)
    except Exception as exc:
        return json_error(exc)
    return jsonify(result), 200


@finance_bp.get("/cash/salary-candidates")
@require_auth
@require_role("ADMIN")
def salary_candidates_route():
    try:
        rows = payroll_service.daily_salary_candidates(request.args.get("date") or _today())
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": rows, "count": len(rows)}), 200

# Overview: Flask API routes for payroll accruals, attendance, periods, loans and debts.

# backend/perla/routes/payroll.py
"""
Payroll API Routes

- Accruals are read-only here: they are created only by day closure.
- Workers can read their own accruals; everything else is ADMIN only.
"""

from flask import Blueprint, request, jsonify, g

from ..services import lending_service, payroll_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role
from . import json_error


payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


# =============================================================================
# ACCRUALS / ATTENDANCE
# =============================================================================

@payroll_bp.get("/accruals")
@require_auth
def list_accruals_route():
    user_id = request.args.get("user_id", type=int) if g.current_user.is_admin else g.current_user.id
    try:
        rows = payroll_service.list_accruals(
            from_date=request.args.get("from"),
            to_date=request.args.get("to"),
            user_id=user_id,
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)}), 200


@payroll_bp.get("/summary")
@require_auth
@require_role("ADMIN")
def payroll_summary_route():
    """Days accrued and total due per worker. Query params: from, to (required)."""
    try:
        if not request.args.get("from") or not request.args.get("to"):
            raise ValidationError("from and to are required")
        summary = payroll_service.payroll_summary(request.args["from"], request.args["to"])
    except Exception as exc:
        return json_error(exc)
    return jsonify(summary), 200


@payroll_bp.get("/attendance")
@require_auth
@require_role("ADMIN")
def weekly_attendance_route():
    try:
        data = payroll_service.weekly_attendance(request.args.get("from"), request.args.get("to"))
    except Exception as exc:
        return json_error(exc)
    return jsonify(data), 200


# =============================================================================
# PAYROLL PERIODS
# =============================================================================

@payroll_bp.get("/periods")
@require_auth
@require_role("ADMIN")
def list_periods_route():
    periods = payroll_service.list_periods()
    return jsonify({"items": [p.to_dict() for p in periods], "count": len(periods)}), 200


@payroll_bp.post("/periods")
@require_auth
@require_role("ADMIN")
def create_period_route():
    data = request.get_json(silent=True) or {}
    try:
        period = payroll_service.create_period(
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(period.to_dict()), 201


@payroll_bp.patch("/periods/<int:period_id>")
@require_auth
@require_role("ADMIN")
def update_period_route(period_id: int):
    data = request.get_json(silent=True) or {}
    try:
        period = payroll_service.set_period_status(period_id, data.get("status"))
    except Exception as exc:
        return json_error(exc)
    return jsonify(period.to_dict()), 200


@payroll_bp.delete("/periods/<int:period_id>")
@require_auth
@require_role("ADMIN")
def delete_period_route(period_id: int):
    try:
        payroll_service.delete_period(period_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


@payroll_bp.get("/periods/<int:period_id>/items")
@require_auth
@require_role("ADMIN")
def list_period_items_route(period_id: int):
    try:
        items = payroll_service.list_period_items(period_id)
        totals = payroll_service.period_totals(period_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items), "totals": totals}), 200


@payroll_bp.post("/periods/<int:period_id>/items")
@require_auth
@require_role("ADMIN")
def add_period_item_route(period_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "amount" not in data:
            raise ValidationError("amount is required")
        item = payroll_service.add_period_item(
            period_id,
            item_type=data.get("item_type"),
            amount=data.get("amount"),
            employee_name=data.get("employee_name"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(item.to_dict()), 201


@payroll_bp.delete("/items/<int:item_id>")
@require_auth
@require_role("ADMIN")
def delete_period_item_route(item_id: int):
    try:
        payroll_service.delete_period_item(item_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


# =============================================================================
# LOANS / INTERNAL DEBTS
# =============================================================================

@payroll_bp.get("/loans")
@require_auth
@require_role("ADMIN")
def list_loans_route():
    outstanding = request.args.get("outstanding", "false").lower() == "true"
    loans = lending_service.list_loans(outstanding_only=outstanding)
    return jsonify({"items": [l.to_dict() for l in loans], "count": len(loans)}), 200


@payroll_bp.post("/loans")
@require_auth
@require_role("ADMIN")
def create_loan_route():
    data = request.get_json(silent=True) or {}
    try:
        if "total" not in data:
            raise ValidationError("total is required")
        loan = lending_service.create_loan(
            employee_name=data.get("employee_name"),
            total=data.get("total"),
            installments=data.get("installments"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(loan.to_dict()), 201


@payroll_bp.post("/loans/<int:loan_id>/payments")
@require_auth
@require_role("ADMIN")
def pay_loan_route(loan_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "amount" not in data:
            raise ValidationError("amount is required")
        loan = lending_service.pay_loan(loan_id, data["amount"])
    except Exception as exc:
        return json_error(exc)
    return jsonify(loan.to_dict()), 200


@payroll_bp.patch("/loans/<int:loan_id>")
@require_auth
@require_role("ADMIN")
def set_loan_balance_route(loan_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "balance" not in data:
            raise ValidationError("balance is required")
        loan = lending_service.set_loan_balance(loan_id, data["balance"])
    except Exception as exc:
        return json_error(exc)
    return jsonify(loan.to_dict()), 200


@payroll_bp.delete("/loans/<int:loan_id>")
@require_auth
@require_role("ADMIN")
def delete_loan_route(loan_id: int):
    try:
        lending_service.delete_loan(loan_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200


@payroll_bp.get("/debts")
@require_auth
@require_role("ADMIN")
def list_debts_route():
    outstanding = request.args.get("outstanding", "false").lower() == "true"
    debts = lending_service.list_debts(outstanding_only=outstanding)
    return jsonify({"items": [d.to_dict() for d in debts], "count": len(debts)}), 200


@payroll_bp.post("/debts")
@require_auth
@require_role("ADMIN")
def create_debt_route():
    data = request.get_json(silent=True) or {}
    try:
        if "amount" not in data:
            raise ValidationError("amount is required")
        debt = lending_service.create_debt(
            employee_name=data.get("employee_name"),
            amount=data.get("amount"),
            description=data.get("description"),
        )
    except Exception as exc:
        return json_error(exc)
    return jsonify(debt.to_dict()), 201


@payroll_bp.post("/debts/<int:debt_id>/payments")
@require_auth
@require_role("ADMIN")
def pay_debt_route(debt_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "amount" not in data:
            raise ValidationError("amount is required")
        debt = lending_service.pay_debt(debt_id, data["amount"])
    except Exception as exc:
        return json_error(exc)
    return jsonify(debt.to_dict()), 200


@payroll_bp.patch("/debts/<int:debt_id>")
@require_auth
@require_role("ADMIN")
def set_debt_balance_route(debt_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "balance" not in data:
            raise ValidationError("balance is required")
        debt = lending_service.set_debt_balance(debt_id, data["balance"])
    except Exception as exc:
        return json_error(exc)
    return jsonify(debt.to_dict()), 200


@payroll_bp.delete("/debts/<int:debt_id>")
@require_auth
@require_role("ADMIN")
def delete_debt_route(debt_id: int):
    try:
        lending_service.delete_debt(debt_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({"ok": True}), 200

# Overview: Payroll accruals, attendance and payroll periods.

from __future__ import annotations

from collections import OrderedDict
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, or_

from ..extensions import db
from ..models import (
    CashEntry,
    CashUserClosure,
    PayrollAccrual,
    PayrollItem,
    PayrollPeriod,
    User,
)
from ..models.auth import ROLE_USER
from ..models.finance import PAYROLL_ITEM_TYPES, PERIOD_CLOSED, PERIOD_OPEN
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    money_str,
    require_date,
    to_money,
)
from perla.time_utils import business_today, iter_dates, week_bounds
"""
Perla Payroll Accrual Invariants (authoritative)

- At most one PayrollAccrual per (accrual_date, user_id); enforced by a
  unique constraint and checked before every insert.
- Accruals are created only by day closure (accrue_if_absent), never by a
  direct user action. Re-closing a day never pays a worker twice.
- The amount is the worker's daily_salary when set, else PAYROLL_DAILY_RATE.
  It is not derived from the day's cash totals; cash_closure_id is provenance.
- Workers resolving to an amount <= 0, and inactive or unknown users, are skipped.
"""


# =============================================================================
# ACCRUALS
# =============================================================================

def daily_rate() -> Decimal:
    return to_money(current_app.config.get("PAYROLL_DAILY_RATE", "0.00"), field="PAYROLL_DAILY_RATE")


def resolve_daily_amount(user: User) -> Decimal:
    if user.daily_salary is not None:
        return to_money(user.daily_salary, field="daily_salary")
    return daily_rate()


def contributors_for_date(day: date) -> list[int]:
    """Distinct creator ids with at least one cash entry on `day`, ascending."""
    rows = (
        db.session.query(CashEntry.created_by_id)
        .filter(CashEntry.entry_date == day, CashEntry.created_by_id.isnot(None))
        .distinct()
        .order_by(CashEntry.created_by_id.asc())
        .all()
    )
    return [r[0] for r in rows]


def accrue_if_absent(
    day: date,
    user_id: int,
    *,
    cash_closure_id: int | None = None,
    amount=None,
) -> PayrollAccrual | None:
    """
    Insert the (day, user) accrual unless one exists. Returns None when skipped.

    Flushes only: the caller owns the transaction. A concurrent insert of the
    same pair surfaces as IntegrityError and is retried by the caller.
    """
    existing = db.session.query(PayrollAccrual).filter_by(
        accrual_date=day, user_id=user_id
    ).first()
    if existing is not None:
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None

    amount = resolve_daily_amount(user) if amount is None else to_money(amount)
    if amount <= 0:
        return None

    accrual = PayrollAccrual(
        accrual_date=day,
        user_id=user.id,
        user_name=user.display_name,
        amount=amount,
        description=current_app.config.get("PAYROLL_ACCRUAL_DESCRIPTION", "Sueldo diario"),
        cash_closure_id=cash_closure_id,
    )
    db.session.add(accrual)
    db.session.flush()
    return accrual


def daily_salary_candidates(entry_date) -> list[dict]:
    """Workers who contributed to a date, with the amount they would accrue."""
    day = require_date(entry_date)
    out = []
    for user_id in contributors_for_date(day):
        user = db.session.get(User, user_id)
        if user is None:
            continue
        accrued = db.session.query(PayrollAccrual).filter_by(
            accrual_date=day, user_id=user_id
        ).first()
        out.append({
            "user_id": user.id,
            "user_name": user.display_name,
            "is_active": user.is_active,
            "amount": money_str(resolve_daily_amount(user)),
            "user_closed": db.session.query(CashUserClosure.id).filter_by(
                closure_date=day, user_id=user.id
            ).first() is not None,
            "accrued": accrued is not None,
        })
    return out


def list_accruals(
    *,
    from_date=None,
    to_date=None,
    user_id: int | None = None,
) -> list[PayrollAccrual]:
    q = db.session.query(PayrollAccrual)
    if from_date is not None:
        q = q.filter(PayrollAccrual.accrual_date >= require_date(from_date, field="from"))
    if to_date is not None:
        q = q.filter(PayrollAccrual.accrual_date <= require_date(to_date, field="to"))
    if user_id is not None:
        q = q.filter(PayrollAccrual.user_id == user_id)
    return q.order_by(PayrollAccrual.accrual_date.desc(), PayrollAccrual.user_id.asc()).all()


def payroll_summary(from_date, to_date) -> dict:
    """
    Accrued days and total due per worker over a date range.

    Returns {"period": {"from", "to"}, "employees": [...], "total_payroll"}.
    """
    start = require_date(from_date, field="from")
    end = require_date(to_date, field="to")
    if start > end:
        raise ValidationError("from must be on or before to")

    accruals = list_accruals(from_date=start, to_date=end)

    per_user: dict[int, dict] = {}
    for a in accruals:
        row = per_user.setdefault(a.user_id, {
            "user_id": a.user_id,
            "user_name": a.user_name,
            "days": 0,
            "total": Decimal("0.00"),
        })
        row["days"] += 1
        row["total"] += Decimal(a.amount)

    employees = sorted(per_user.values(), key=lambda r: (r["user_name"] or "", r["user_id"]))
    grand_total = sum((row["total"] for row in employees), Decimal("0.00"))
    for row in employees:
        row["total"] = money_str(row["total"])

    return {
        "period": {"from": start.isoformat(), "to": end.isoformat()},
        "employees": employees,
        "total_payroll": money_str(grand_total),
    }


def weekly_attendance(from_date=None, to_date=None) -> dict:
    """
    Per-worker day marks from user closures.

    Defaults to the current Monday..Sunday week in the business timezone.
    """
    if from_date is None and to_date is None:
        start, end = week_bounds(business_today(current_app.config["BUSINESS_TZ"]))
    else:
        start = require_date(from_date, field="from")
        end = require_date(to_date, field="to")
    if start > end:
        raise ValidationError("from must be on or before to")

    days = [d.isoformat() for d in iter_dates(start, end)]

    closures = (
        db.session.query(CashUserClosure)
        .filter(CashUserClosure.closure_date >= start, CashUserClosure.closure_date <= end)
        .all()
    )
    marked: dict[int, set[str]] = {}
    for c in closures:
        marked.setdefault(c.user_id, set()).add(c.closure_date.isoformat())

    users = db.session.query(User).filter(
        or_(
            and_(User.is_active.is_(True), User.role == ROLE_USER),
            User.id.in_(list(marked)),
        )
    ).order_by(User.name.asc(), User.email.asc()).all()

    workers = []
    for user in users:
        seen = marked.get(user.id, set())
        workers.append({
            "user_id": user.id,
            "user_name": user.display_name,
            "days": OrderedDict((d, d in seen) for d in days),
            "total_days": len(seen),
        })

    return {"start": start.isoformat(), "end": end.isoformat(), "days": days, "workers": workers}


# =============================================================================
# PAYROLL PERIODS
# =============================================================================

def _get_period(period_id: int) -> PayrollPeriod:
    period = db.session.get(PayrollPeriod, period_id)
    if period is None:
        raise NotFoundError("Payroll period not found")
    return period


def list_periods() -> list[PayrollPeriod]:
    return db.session.query(PayrollPeriod).order_by(PayrollPeriod.start_date.desc()).all()


def create_period(*, start_date, end_date) -> PayrollPeriod:
    start = require_date(start_date, field="start_date")
    end = require_date(end_date, field="end_date")
    if start > end:
        raise ValidationError("start_date must be on or before end_date")

    period = PayrollPeriod(start_date=start, end_date=end, status=PERIOD_OPEN)
    db.session.add(period)
    db.session.commit()
    return period


def set_period_status(period_id: int, status: str) -> PayrollPeriod:
    if status not in (PERIOD_OPEN, PERIOD_CLOSED):
        raise ValidationError(f'status must be "{PERIOD_OPEN}" or "{PERIOD_CLOSED}"')
    period = _get_period(period_id)
    period.status = status
    db.session.commit()
    return period


def delete_period(period_id: int) -> None:
    period = _get_period(period_id)
    for item in list(period.items):
        db.session.delete(item)
    db.session.delete(period)
    db.session.commit()


def list_period_items(period_id: int) -> list[PayrollItem]:
    _get_period(period_id)
    return (
        db.session.query(PayrollItem)
        .filter_by(period_id=period_id)
        .order_by(PayrollItem.id.asc())
        .all()
    )


def add_period_item(period_id: int, *, item_type: str, amount, employee_name: str) -> PayrollItem:
    period = _get_period(period_id)
    if period.status == PERIOD_CLOSED:
        raise ConflictError("Payroll period is closed")
    if item_type not in PAYROLL_ITEM_TYPES:
        raise ValidationError(f"item_type must be one of: {', '.join(PAYROLL_ITEM_TYPES)}")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    employee_name = (employee_name or "").strip()
    if not employee_name:
        raise ValidationError("employee_name is required")

    item = PayrollItem(period_id=period.id, item_type=item_type, amount=amount, employee_name=employee_name)
    db.session.add(item)
    db.session.commit()
    return item


def delete_period_item(item_id: int) -> None:
    item = db.session.get(PayrollItem, item_id)
    if item is None:
        raise NotFoundError("Payroll item not found")
    if item.period.status == PERIOD_CLOSED:
        raise ConflictError("Payroll period is closed")
    db.session.delete(item)
    db.session.commit()


def period_totals(period_id: int) -> dict:
    """Net = salary + bonus - deduction over the period's items."""
    items = list_period_items(period_id)
    sums = {t: Decimal("0.00") for t in PAYROLL_ITEM_TYPES}
    for item in items:
        sums[item.item_type] += Decimal(item.amount)
    net = sums["SALARY"] + sums["BONUS"] - sums["DEDUCTION"]
    return {
        "period_id": period_id,
        **{t.lower(): money_str(v) for t, v in sums.items()},
        "net": money_str(net),
    }

# Overview: Service-layer operations for cash entries and daily totals.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import case, func

from ..extensions import db
from ..models import CashDailySummary, CashEntry, CashUserClosure
from ..models.finance import ENTRY_EXPENSE, ENTRY_INCOME
from ..validation import (
    CENTS,
    DayClosedError,
    ValidationError,
    enforce_rules_cash_entry,
    money_str,
    require_date,
    to_money,
)
from .concurrency import get_or_create, run_with_retry
from .event_service import record_event
"""
Perla Cash Invariants (authoritative)

- A CashEntry belongs to a business date (entry_date), not to its created_at.
- Entries are immutable once created.
- Totals are always recomputed from CashEntry rows (GROUP BY entry_date);
  stored summaries are never consulted to answer a totals query.
- balance = incomes - expenses, per date.
- No entry can be added to a date whose summary is closed, nor by a worker
  who already closed their own day.
"""


def _dec(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _date_range(from_date, to_date) -> tuple[date, date]:
    start = require_date(from_date, field="from")
    end = require_date(to_date, field="to")
    if start > end:
        raise ValidationError("from must be on or before to")
    return start, end


def get_summary(day: date) -> CashDailySummary | None:
    return db.session.query(CashDailySummary).filter_by(summary_date=day).first()


def is_day_closed(day: date) -> bool:
    summary = get_summary(day)
    return summary is not None and summary.is_closed


def has_user_closed(day: date, user_id: int) -> bool:
    return db.session.query(CashUserClosure.id).filter_by(
        closure_date=day, user_id=user_id
    ).first() is not None


# =============================================================================
# TOTALS
# =============================================================================

def _totals_query(start: date, end: date, created_by_id: int | None = None):
    incomes = func.coalesce(
        func.sum(case((CashEntry.kind == ENTRY_INCOME, CashEntry.amount), else_=0)), 0
    )
    expenses = func.coalesce(
        func.sum(case((CashEntry.kind == ENTRY_EXPENSE, CashEntry.amount), else_=0)), 0
    )
    q = (
        db.session.query(CashEntry.entry_date, incomes.label("incomes"), expenses.label("expenses"))
        .filter(CashEntry.entry_date >= start, CashEntry.entry_date <= end)
    )
    if created_by_id is not None:
        q = q.filter(CashEntry.created_by_id == created_by_id)
    return q.group_by(CashEntry.entry_date)


def totals_for_date(day: date, *, created_by_id: int | None = None) -> tuple[Decimal, Decimal]:
    """(incomes, expenses) for a single date; zeros when the date has no entries."""
    row = _totals_query(day, day, created_by_id).first()
    if row is None:
        return Decimal("0.00"), Decimal("0.00")
    return _dec(row.incomes), _dec(row.expenses)


def compute_totals(from_date, to_date, *, created_by_id: int | None = None) -> list[dict]:
    """
    Per-date incomes/expenses/balance over [from_date, to_date], newest first.

    Pure read over cash_entries. Dates without entries are omitted.
    """
    start, end = _date_range(from_date, to_date)
    rows = _totals_query(start, end, created_by_id).order_by(CashEntry.entry_date.desc()).all()

    out = []
    for row in rows:
        incomes = _dec(row.incomes)
        expenses = _dec(row.expenses)
        out.append({
            "date": row.entry_date.isoformat(),
            "incomes": money_str(incomes),
            "expenses": money_str(expenses),
            "balance": money_str(incomes - expenses),
        })
    return out


# =============================================================================
# ENTRIES
# =============================================================================

def add_cash_entry(*, entry_date, kind: str, description: str | None, amount, actor) -> CashEntry:
    """
    Record an income or expense for a business date.

    Raises:
        ValidationError: bad date, kind or amount
        DayClosedError: the date is closed, or the actor closed their own day
    """
    day = require_date(entry_date, field="entry_date")
    patch = {"kind": kind, "amount": to_money(amount)}
    enforce_rules_cash_entry(patch)
    description = (description or "").strip()

    if is_day_closed(day):
        raise DayClosedError(f"Cash day {day.isoformat()} is closed")
    if actor is not None and has_user_closed(day, actor.id):
        raise DayClosedError(f"You already closed your cash day {day.isoformat()}")

    entry = CashEntry(
        entry_date=day,
        kind=kind,
        description=description,
        amount=patch["amount"],
        created_by_id=actor.id if actor is not None else None,
        created_by_name=actor.display_name if actor is not None else None,
    )
    db.session.add(entry)
    db.session.flush()

    record_event(
        event_type="cash:entry-added",
        event_category="cash",
        entity_type="cash_entry",
        entity_id=entry.id,
        actor_user_id=entry.created_by_id,
        actor=entry.created_by_name,
        business_date=day,
        payload={"kind": kind, "amount": money_str(entry.amount)},
    )

    db.session.commit()
    return entry


def list_entries(day: date, *, user_id: int | None = None) -> list[CashEntry]:
    q = db.session.query(CashEntry).filter(CashEntry.entry_date == day)
    if user_id is not None:
        q = q.filter(CashEntry.created_by_id == user_id)
    return q.order_by(CashEntry.created_at.asc(), CashEntry.id.asc()).all()


def get_cash_cut(entry_date, *, user_id: int | None = None) -> dict:
    """
    The cash cut for one date: its entries (optionally one creator's), totals
    computed from those entries, and the stored closure state.
    """
    day = require_date(entry_date)
    entries = list_entries(day, user_id=user_id)
    incomes, expenses = totals_for_date(day, created_by_id=user_id)
    summary = get_summary(day)

    cut = {
        "date": day.isoformat(),
        "entries": [e.to_dict() for e in entries],
        "totals": {
            "incomes": money_str(incomes),
            "expenses": money_str(expenses),
            "balance": money_str(incomes - expenses),
        },
        "is_closed": bool(summary and summary.is_closed),
        "closed_by": summary.closed_by if summary else None,
        "closed_at": summary.to_dict()["closed_at"] if summary else None,
    }
    if user_id is not None:
        cut["user_closed"] = has_user_closed(day, user_id)
    return cut


def list_daily_summaries(from_date, to_date, *, user_id: int | None = None) -> list[dict]:
    """
    Stored summaries in range, newest first.

    With user_id: that worker's computed totals per date, carrying the stored
    summary's closure fields for dates that have one.
    """
    start, end = _date_range(from_date, to_date)
    summaries = (
        db.session.query(CashDailySummary)
        .filter(CashDailySummary.summary_date >= start, CashDailySummary.summary_date <= end)
        .order_by(CashDailySummary.summary_date.desc())
        .all()
    )
    if user_id is None:
        return [s.to_dict() for s in summaries]

    by_date = {s.summary_date.isoformat(): s for s in summaries}
    out = []
    for row in compute_totals(start, end, created_by_id=user_id):
        stored = by_date.get(row["date"])
        row["closed_by"] = stored.closed_by if stored else None
        row["closed_at"] = stored.to_dict()["closed_at"] if stored else None
        row["user_closed"] = has_user_closed(date.fromisoformat(row["date"]), user_id)
        out.append(row)
    return out


# =============================================================================
# WORKER SELF-CLOSE
# =============================================================================

def user_close_day(entry_date, *, user) -> tuple[CashUserClosure, bool]:
    """
    A worker marks their own day closed. Idempotent.

    Returns (closure, created).
    """
    day = require_date(entry_date)

    def _close():
        closure, created = get_or_create(CashUserClosure, closure_date=day, user_id=user.id)
        if created:
            record_event(
                event_type="cash:user-closed",
                event_category="cash",
                entity_type="cash_user_closure",
                entity_id=closure.id,
                actor_user_id=user.id,
                actor=user.display_name,
                business_date=day,
            )
        db.session.commit()
        return closure, created

    return run_with_retry(_close, retry_on_conflict=True)

# Overview: Daily cash closure (close, auto-close, reopen) and the accruals it triggers.

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import CashDailySummary, CashUserClosure, PayrollAccrual
from ..validation import ConflictError, ValidationError, money_str, require_date
from perla.time_utils import utcnow
from .cash_service import get_summary, totals_for_date
from .concurrency import get_or_create, run_with_retry
from .event_service import record_event
from .payroll_service import accrue_if_absent, contributors_for_date
"""
Perla Daily Closure Invariants (authoritative)

- Closing a date upserts exactly one CashDailySummary (unique on date) whose
  totals are recomputed from cash_entries at close time.
- Closure is idempotent. Re-closing overwrites the totals in place, keeps the
  first closer (closed_by/closed_at), upserts the same CashUserClosure rows and
  never creates a second PayrollAccrual for any (date, worker).
- Every distinct creator of an entry on the date gets a CashUserClosure.
  Accruals follow the payroll rules (see payroll_service).
- A date without entries still closes (all-zero summary, nobody accrued).
- Concurrent closes of the same date race on the unique keys; the loser rolls
  back and re-runs the whole unit against the winner's rows.
"""

logger = logging.getLogger(__name__)

STATUS_CLOSED = "closed"
STATUS_RECLOSED = "reclosed"


def close_day(entry_date, *, closed_by: str, include_user_ids=None) -> dict:
    """
    Close a business date.

    Args:
        entry_date: date or YYYY-MM-DD string
        closed_by: identity recorded on the summary (admin email or system actor)
        include_user_ids: when given, only these contributors are accrued

    Returns:
        {"status": "closed" | "reclosed", "summary": {...},
         "closed_user_ids": [...], "accruals": [...]}
    """
    day = require_date(entry_date)
    closed_by = (closed_by or "").strip()
    if not closed_by:
        raise ValidationError("closed_by is required")
    include = set(include_user_ids) if include_user_ids is not None else None

    def _close() -> dict:
        incomes, expenses = totals_for_date(day)

        summary, _ = get_or_create(CashDailySummary, lock=True, summary_date=day)
        was_closed = summary.is_closed

        summary.incomes = incomes
        summary.expenses = expenses
        summary.balance = incomes - expenses
        if not was_closed:
            summary.closed_by = closed_by
            summary.closed_at = utcnow()
        db.session.flush()

        contributors = contributors_for_date(day)
        for user_id in contributors:
            get_or_create(CashUserClosure, closure_date=day, user_id=user_id)

        accruals = []
        for user_id in contributors:
            if include is not None and user_id not in include:
                continue
            accrual = accrue_if_absent(day, user_id, cash_closure_id=summary.id)
            if accrual is not None:
                accruals.append(accrual)

        status = STATUS_RECLOSED if was_closed else STATUS_CLOSED
        record_event(
            event_type="cash:day-closed",
            event_category="cash",
            entity_type="cash_daily_summary",
            entity_id=summary.id,
            actor=closed_by,
            business_date=day,
            payload={
                "status": status,
                "incomes": money_str(incomes),
                "expenses": money_str(expenses),
                "balance": money_str(incomes - expenses),
                "accrued_user_ids": [a.user_id for a in accruals],
            },
        )

        db.session.commit()
        return {
            "status": status,
            "summary": summary.to_dict(),
            "closed_user_ids": contributors,
            "accruals": [a.to_dict() for a in accruals],
        }

    result = run_with_retry(_close, retry_on_conflict=True)
    logger.info(
        "cash day %s %s by %s (workers=%d, accrued=%d)",
        day.isoformat(), result["status"], closed_by,
        len(result["closed_user_ids"]), len(result["accruals"]),
    )
    return result


def auto_close_day(entry_date) -> dict:
    """close_day on behalf of the configured system actor."""
    return close_day(entry_date, closed_by=current_app.config["AUTO_CLOSE_ACTOR"])


def reopen_day(entry_date, *, actor) -> dict:
    """
    Reopen a closed date: drop its accruals and user closures, clear the
    closure fields and refresh the totals.

    Raises:
        ConflictError: the date is not closed
    """
    day = require_date(entry_date)

    summary = get_summary(day)
    if summary is None or not summary.is_closed:
        raise ConflictError(f"Cash day {day.isoformat()} is not closed")

    removed_accruals = (
        db.session.query(PayrollAccrual)
        .filter(PayrollAccrual.accrual_date == day)
        .delete(synchronize_session=False)
    )
    removed_closures = (
        db.session.query(CashUserClosure)
        .filter(CashUserClosure.closure_date == day)
        .delete(synchronize_session=False)
    )

    incomes, expenses = totals_for_date(day)
    summary.incomes = incomes
    summary.expenses = expenses
    summary.balance = incomes - expenses
    summary.closed_by = None
    summary.closed_at = None

    record_event(
        event_type="cash:day-reopened",
        event_category="cash",
        entity_type="cash_daily_summary",
        entity_id=summary.id,
        actor_user_id=actor.id if actor is not None else None,
        actor=actor.display_name if actor is not None else None,
        business_date=day,
        payload={"removed_accruals": removed_accruals, "removed_user_closures": removed_closures},
    )

    db.session.commit()
    logger.info(
        "cash day %s reopened (accruals removed=%d, user closures removed=%d)",
        day.isoformat(), removed_accruals, removed_closures,
    )
    return {
        "summary": summary.to_dict(),
        "removed_accruals": removed_accruals,
        "removed_user_closures": removed_closures,
    }

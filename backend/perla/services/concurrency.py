# Overview: Row locking, retry and get-or-create helpers shared by the write paths.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on_conflict: bool = False):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). With retry_on_conflict, a unique-key
    IntegrityError is retried as well: the losing writer of a concurrent
    insert re-runs and finds the winner's committed row.
    """
    retryable: tuple = (OperationalError, StaleDataError)
    if retry_on_conflict:
        retryable = retryable + (IntegrityError,)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def get_or_create(model, *, defaults: dict | None = None, lock: bool = False, **keys):
    """
    Find the row matching `keys`; insert it (with `defaults`) if absent.

    Returns (row, created). The insert is flushed, not committed, so it joins
    the caller's transaction. A concurrent insert of the same key surfaces as
    IntegrityError at flush/commit; callers wrap the unit in
    run_with_retry(..., retry_on_conflict=True).
    """
    query = db.session.query(model).filter_by(**keys)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is not None:
        return row, False

    row = model(**keys, **(defaults or {}))
    db.session.add(row)
    db.session.flush()
    return row, True

"""
Retry and get-or-create helpers used by the write paths.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from perla.models import Warehouse
from perla.services.concurrency import get_or_create, run_with_retry


class _Flaky:
    """Raise the given exceptions in order, then return "done"."""

    def __init__(self, *failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "done"


def _unique_violation():
    return IntegrityError("INSERT INTO stock_levels", {}, Exception("UNIQUE constraint failed"))


def _locked():
    return OperationalError("UPDATE stock_levels", {}, Exception("database is locked"))


# =============================================================================
# RUN WITH RETRY
# =============================================================================


class TestRunWithRetry:
    def test_unique_violation_retried_when_asked(self, db_session):
        func = _Flaky(_unique_violation())
        assert run_with_retry(func, backoff_base=0, retry_on_conflict=True) == "done"
        assert func.calls == 2

    def test_unique_violation_raised_by_default(self, db_session):
        func = _Flaky(_unique_violation())
        with pytest.raises(IntegrityError):
            run_with_retry(func, backoff_base=0)
        assert func.calls == 1

    def test_lock_errors_retried(self, db_session):
        func = _Flaky(_locked(), _locked())
        assert run_with_retry(func, backoff_base=0) == "done"
        assert func.calls == 3

    def test_gives_up_after_attempts(self, db_session):
        func = _Flaky(_locked(), _locked(), _locked())
        with pytest.raises(OperationalError):
            run_with_retry(func, attempts=3, backoff_base=0)
        assert func.calls == 3

    def test_other_errors_not_retried(self, db_session):
        func = _Flaky(ValueError("bad input"))
        with pytest.raises(ValueError):
            run_with_retry(func, backoff_base=0, retry_on_conflict=True)
        assert func.calls == 1


# =============================================================================
# GET OR CREATE
# =============================================================================


class TestGetOrCreate:
    def test_second_call_finds_the_first_row(self, db_session):
        first, created = get_or_create(Warehouse, defaults={"location": "Zona 1"}, name="Central")
        again, created_again = get_or_create(Warehouse, defaults={"location": "ignored"}, name="Central")

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert again.location == "Zona 1"

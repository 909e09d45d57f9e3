from __future__ import annotations

from ..extensions import db
from perla.time_utils import to_utc_z, to_iso_date
from perla.validation import money_str


ENTRY_INCOME = "INCOME"
ENTRY_EXPENSE = "EXPENSE"

PERIOD_OPEN = "OPEN"
PERIOD_CLOSED = "CLOSED"

PAYROLL_ITEM_TYPES = ("SALARY", "BONUS", "DEDUCTION")


class CashEntry(db.Model):
    """
    Income or expense recorded against a business date (the "cut" date).

    entry_date is the day the movement belongs to, independent of created_at.
    Immutable once created.
    """
    __tablename__ = "cash_entries"
    __table_args__ = (
        db.Index("ix_cash_entries_date_creator", "entry_date", "created_by_id"),
        db.CheckConstraint("amount > 0", name="ck_cash_entries_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_date = db.Column(db.Date, nullable=False, index=True)
    kind = db.Column(db.String(8), nullable=False)  # INCOME, EXPENSE
    description = db.Column(db.Text, nullable=False, default="")
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_by_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_date": to_iso_date(self.entry_date),
            "kind": self.kind,
            "description": self.description,
            "amount": money_str(self.amount),
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
        }


class CashDailySummary(db.Model):
    """
    Closure snapshot for one business date (at most one row per date).

    Re-closing a date recomputes and overwrites the totals in place.
    closed_by is None while the day is open (never closed, or reopened).
    """
    __tablename__ = "cash_daily_summaries"
    __table_args__ = (
        db.UniqueConstraint("summary_date", name="uq_cash_daily_summaries_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    summary_date = db.Column(db.Date, nullable=False)

    incomes = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    expenses = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    closed_by = db.Column(db.String(255), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_closed(self) -> bool:
        return self.closed_by is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_iso_date(self.summary_date),
            "incomes": money_str(self.incomes),
            "expenses": money_str(self.expenses),
            "balance": money_str(self.balance),
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CashUserClosure(db.Model):
    """Marks that a worker's day has been closed (by themselves or by a day closure)."""
    __tablename__ = "cash_user_closures"
    __table_args__ = (
        db.UniqueConstraint("closure_date", "user_id", name="uq_cash_user_closures_date_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    closure_date = db.Column(db.Date, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_iso_date(self.closure_date),
            "user_id": self.user_id,
            "closed_at": to_utc_z(self.closed_at),
        }


class PayrollAccrual(db.Model):
    """
    One day of wages owed to one worker. Unique on (date, user).

    cash_closure_id is provenance only: the summary whose closure produced it.
    """
    __tablename__ = "payroll_accruals"
    __table_args__ = (
        db.UniqueConstraint("accrual_date", "user_id", name="uq_payroll_accruals_date_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    accrual_date = db.Column(db.Date, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=False, default="Sueldo diario")
    cash_closure_id = db.Column(
        db.Integer, db.ForeignKey("cash_daily_summaries.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_iso_date(self.accrual_date),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "amount": money_str(self.amount),
            "description": self.description,
            "cash_closure_id": self.cash_closure_id,
            "created_at": to_utc_z(self.created_at),
        }


class PayrollPeriod(db.Model):
    __tablename__ = "payroll_periods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PERIOD_OPEN)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class PayrollItem(db.Model):
    __tablename__ = "payroll_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    period_id = db.Column(db.Integer, db.ForeignKey("payroll_periods.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)  # SALARY, BONUS, DEDUCTION
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    employee_name = db.Column(db.String(255), nullable=False)

    period = db.relationship("PayrollPeriod", backref=db.backref("items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "period_id": self.period_id,
            "item_type": self.item_type,
            "amount": money_str(self.amount),
            "employee_name": self.employee_name,
        }


class Loan(db.Model):
    """Loan to an employee, repaid in installments. balance starts at total."""
    __tablename__ = "loans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    employee_name = db.Column(db.String(255), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    installments = db.Column(db.Integer, nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_name": self.employee_name,
            "total": money_str(self.total),
            "installments": self.installments,
            "balance": money_str(self.balance),
            "created_at": to_utc_z(self.created_at),
        }


class InternalDebt(db.Model):
    """Money an employee owes the business (shortages, advances)."""
    __tablename__ = "internal_debts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    employee_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_name": self.employee_name,
            "description": self.description,
            "amount": money_str(self.amount),
            "balance": money_str(self.balance),
            "created_at": to_utc_z(self.created_at),
        }

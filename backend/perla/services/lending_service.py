# Overview: Employee loans and internal debts; balances move through payments or a direct set.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import InternalDebt, Loan
from ..validation import NotFoundError, ValidationError, to_money


def _positive_amount(value, field: str) -> Decimal:
    amount = to_money(value, field=field)
    if amount <= 0:
        raise ValidationError(f"{field} must be > 0")
    return amount


def _employee(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("employee_name is required")
    return name


def _apply_payment(row, value) -> None:
    amount = _positive_amount(value, "amount")
    balance = Decimal(row.balance)
    if amount > balance:
        raise ValidationError(f"amount exceeds outstanding balance {balance}")
    row.balance = balance - amount


def _set_balance(row, value, ceiling) -> None:
    balance = to_money(value, field="balance")
    if balance < 0:
        raise ValidationError("balance must be >= 0")
    if balance > Decimal(ceiling):
        raise ValidationError(f"balance cannot exceed {Decimal(ceiling)}")
    row.balance = balance


# =============================================================================
# LOANS
# =============================================================================

def _get_loan(loan_id: int) -> Loan:
    loan = db.session.get(Loan, loan_id)
    if loan is None:
        raise NotFoundError("Loan not found")
    return loan


def list_loans(*, outstanding_only: bool = False) -> list[Loan]:
    q = db.session.query(Loan)
    if outstanding_only:
        q = q.filter(Loan.balance > 0)
    return q.order_by(Loan.created_at.desc(), Loan.id.desc()).all()


def create_loan(*, employee_name: str, total, installments) -> Loan:
    """New loan; balance starts at total."""
    total = _positive_amount(total, "total")
    if isinstance(installments, bool) or not isinstance(installments, int) or installments < 1:
        raise ValidationError("installments must be a positive integer")

    loan = Loan(
        employee_name=_employee(employee_name),
        total=total,
        installments=installments,
        balance=total,
    )
    db.session.add(loan)
    db.session.commit()
    return loan


def pay_loan(loan_id: int, amount) -> Loan:
    loan = _get_loan(loan_id)
    _apply_payment(loan, amount)
    db.session.commit()
    return loan


def set_loan_balance(loan_id: int, balance) -> Loan:
    """Overwrite the outstanding balance (0 <= balance <= total)."""
    loan = _get_loan(loan_id)
    _set_balance(loan, balance, loan.total)
    db.session.commit()
    return loan


def delete_loan(loan_id: int) -> None:
    db.session.delete(_get_loan(loan_id))
    db.session.commit()


# =============================================================================
# INTERNAL DEBTS
# =============================================================================

def _get_debt(debt_id: int) -> InternalDebt:
    debt = db.session.get(InternalDebt, debt_id)
    if debt is None:
        raise NotFoundError("Debt not found")
    return debt


def list_debts(*, outstanding_only: bool = False) -> list[InternalDebt]:
    q = db.session.query(InternalDebt)
    if outstanding_only:
        q = q.filter(InternalDebt.balance > 0)
    return q.order_by(InternalDebt.created_at.desc(), InternalDebt.id.desc()).all()


def create_debt(*, employee_name: str, amount, description: str | None = None) -> InternalDebt:
    amount = _positive_amount(amount, "amount")
    debt = InternalDebt(
        employee_name=_employee(employee_name),
        description=(description or "").strip(),
        amount=amount,
        balance=amount,
    )
    db.session.add(debt)
    db.session.commit()
    return debt


def pay_debt(debt_id: int, amount) -> InternalDebt:
    debt = _get_debt(debt_id)
    _apply_payment(debt, amount)
    db.session.commit()
    return debt


def set_debt_balance(debt_id: int, balance) -> InternalDebt:
    debt = _get_debt(debt_id)
    _set_balance(debt, balance, debt.amount)
    db.session.commit()
    return debt


def delete_debt(debt_id: int) -> None:
    db.session.delete(_get_debt(debt_id))
    db.session.commit()

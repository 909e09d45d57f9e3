"""
Employee loans and internal debts.
"""

import pytest

from perla.services import lending_service
from perla.validation import NotFoundError, ValidationError


# =============================================================================
# LOANS
# =============================================================================


class TestLoans:
    def test_loan_starts_at_total_and_pays_down(self, db_session):
        loan = lending_service.create_loan(employee_name="Ana", total="600.00", installments=4)
        assert loan.to_dict()["balance"] == "600.00"

        lending_service.pay_loan(loan.id, "150.00")
        paid = lending_service.pay_loan(loan.id, "450.00")
        assert paid.to_dict()["balance"] == "0.00"

        assert lending_service.list_loans(outstanding_only=True) == []
        assert len(lending_service.list_loans()) == 1

    def test_overpayment_rejected(self, db_session):
        loan = lending_service.create_loan(employee_name="Ana", total="100.00", installments=2)
        with pytest.raises(ValidationError):
            lending_service.pay_loan(loan.id, "100.01")
        assert lending_service.list_loans()[0].to_dict()["balance"] == "100.00"

    def test_balance_can_be_set_directly(self, db_session):
        loan = lending_service.create_loan(employee_name="Ana", total="300.00", installments=3)
        lending_service.pay_loan(loan.id, "300.00")

        # Corrections may move the balance back up, never above the total
        assert lending_service.set_loan_balance(loan.id, "120.00").to_dict()["balance"] == "120.00"
        assert lending_service.set_loan_balance(loan.id, "300.00").to_dict()["balance"] == "300.00"
        assert lending_service.set_loan_balance(loan.id, "0").to_dict()["balance"] == "0.00"

    @pytest.mark.parametrize("balance", ["-0.01", "300.01", "abc", None])
    def test_balance_set_out_of_range(self, db_session, balance):
        loan = lending_service.create_loan(employee_name="Ana", total="300.00", installments=3)
        with pytest.raises(ValidationError):
            lending_service.set_loan_balance(loan.id, balance)
        assert lending_service.list_loans()[0].to_dict()["balance"] == "300.00"

    @pytest.mark.parametrize("installments", [0, -1, True, "3"])
    def test_installments_must_be_positive_int(self, db_session, installments):
        with pytest.raises(ValidationError):
            lending_service.create_loan(employee_name="Ana", total="10.00", installments=installments)

    def test_missing_loan(self, db_session):
        with pytest.raises(NotFoundError):
            lending_service.pay_loan(404, "1.00")
        with pytest.raises(NotFoundError):
            lending_service.set_loan_balance(404, "1.00")
        with pytest.raises(NotFoundError):
            lending_service.delete_loan(404)


# =============================================================================
# INTERNAL DEBTS
# =============================================================================


class TestDebts:
    def test_debt_lifecycle(self, db_session):
        debt = lending_service.create_debt(employee_name=" Luis ", amount="80.00", description="Faltante caja")
        assert debt.employee_name == "Luis"

        lending_service.pay_debt(debt.id, "30.00")
        assert lending_service.list_debts(outstanding_only=True)[0].to_dict()["balance"] == "50.00"

        lending_service.delete_debt(debt.id)
        assert lending_service.list_debts() == []

    def test_debt_balance_set(self, db_session):
        debt = lending_service.create_debt(employee_name="Luis", amount="80.00")

        assert lending_service.set_debt_balance(debt.id, "10.50").to_dict()["balance"] == "10.50"
        with pytest.raises(ValidationError):
            lending_service.set_debt_balance(debt.id, "80.01")
        with pytest.raises(NotFoundError):
            lending_service.set_debt_balance(404, "1.00")

    def test_employee_name_required(self, db_session):
        with pytest.raises(ValidationError):
            lending_service.create_debt(employee_name="  ", amount="5.00")

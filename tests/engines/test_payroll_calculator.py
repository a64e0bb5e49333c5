"""
Tests for the payroll calculator.

Covers:
- Gross, deductions, contributions and net salary
- Loan installment selection
- Revision path with stored statutory amounts
- Input validation
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_config.schema import StatutoryRates
from forecourt_engines.payroll_calculator import (
    AdditionalDeductions,
    AdditionalEarnings,
    Allowance,
    InstallmentSnapshot,
    LoanSnapshot,
    PayrollCalculator,
    SalaryStructure,
)
from forecourt_kernel.exceptions import ValidationError


def _loan(status="active", paid=0, amount=Decimal("1230.00"), count=12):
    return LoanSnapshot(
        loan_id=uuid4(),
        status=status,
        installments=tuple(
            InstallmentSnapshot(
                installment_number=n,
                due_date=date(2024, n % 12 + 1, 15),
                amount=amount,
                status="paid" if n <= paid else "pending",
            )
            for n in range(1, count + 1)
        ),
    )


class TestStandardPayroll:
    """Basic 50000 with one 1230.00 loan installment."""

    def setup_method(self):
        self.calculator = PayrollCalculator(StatutoryRates())

    def test_net_salary(self):
        loan = _loan()
        result = self.calculator.calculate(
            SalaryStructure(basic_salary=Decimal("50000")), active_loans=[loan],
        )
        assert result.earnings.total == Decimal("50000.00")
        assert result.deductions.employee_contribution == Decimal("4000.00")
        assert result.deductions.loan_repayment == Decimal("1230.00")
        assert result.deductions.total == Decimal("5230.00")
        assert result.net_salary == Decimal("44770.00")

    def test_employer_contributions(self):
        result = self.calculator.calculate(SalaryStructure(basic_salary=Decimal("50000")))
        assert result.contributions.employer_contribution == Decimal("6000.00")
        assert result.contributions.employer_levy == Decimal("1500.00")
        assert result.contributions.total == Decimal("7500.00")
        assert result.cost_to_company == Decimal("57500.00")

    def test_allowances_and_extras_in_gross(self):
        result = self.calculator.calculate(
            SalaryStructure(
                basic_salary=Decimal("50000"),
                allowances=(
                    Allowance("Transport", Decimal("3000")),
                    Allowance("Meal", Decimal("2000")),
                ),
            ),
            extra_earnings=AdditionalEarnings(overtime=Decimal("1500"), bonuses=Decimal("500")),
            extra_deductions=AdditionalDeductions(advances=Decimal("1000")),
        )
        assert result.earnings.allowances_total == Decimal("5000.00")
        assert result.earnings.total == Decimal("57000.00")
        assert result.deductions.employee_contribution == Decimal("4560.00")
        assert result.net_salary == Decimal("57000.00") - Decimal("4560.00") - Decimal("1000.00")


class TestLoanSelection:

    def test_next_pending_installment(self):
        loan = _loan(paid=3)
        deductions = PayrollCalculator.select_loan_deductions([loan])
        assert len(deductions) == 1
        assert deductions[0].installment_number == 4
        assert deductions[0].loan_id == loan.loan_id

    def test_one_installment_per_loan(self):
        deductions = PayrollCalculator.select_loan_deductions([_loan(), _loan()])
        assert [d.installment_number for d in deductions] == [1, 1]

    def test_skips_inactive_and_fully_paid_loans(self):
        deductions = PayrollCalculator.select_loan_deductions([
            _loan(status="pending"),
            _loan(paid=12),
        ])
        assert deductions == ()


class TestRevision:

    def test_stored_contributions_are_kept(self):
        calculator = PayrollCalculator(StatutoryRates())
        earnings = calculator.build_earnings(
            SalaryStructure(basic_salary=Decimal("50000")),
            AdditionalEarnings(overtime=Decimal("1000")),
        )
        result = calculator.calculate_from_earnings(
            earnings, (),
            contributions_override=(Decimal("4000.00"), Decimal("6000.00"), Decimal("1500.00")),
        )
        assert result.earnings.total == Decimal("51000.00")
        assert result.deductions.employee_contribution == Decimal("4000.00")
        assert result.net_salary == Decimal("47000.00")


class TestValidation:

    def setup_method(self):
        self.calculator = PayrollCalculator(StatutoryRates())

    def test_missing_basic_salary(self):
        with pytest.raises(ValidationError):
            self.calculator.calculate(SalaryStructure(basic_salary=None))

    def test_negative_basic_salary(self):
        with pytest.raises(ValidationError):
            self.calculator.calculate(SalaryStructure(basic_salary=Decimal("-1")))

    def test_negative_allowance(self):
        with pytest.raises(ValidationError):
            self.calculator.calculate(
                SalaryStructure(
                    basic_salary=Decimal("100"),
                    allowances=(Allowance("Fuel", Decimal("-5")),),
                )
            )

    def test_negative_extra_earnings(self):
        with pytest.raises(ValidationError):
            AdditionalEarnings(bonuses=Decimal("-10"))

    def test_loans_can_push_net_negative(self):
        result = self.calculator.calculate(
            SalaryStructure(basic_salary=Decimal("1000")), active_loans=[_loan()],
        )
        assert result.net_salary == Decimal("1000.00") - Decimal("80.00") - Decimal("1230.00")

"""
Module: forecourt_engines.payroll_calculator
Responsibility:
    Turn an employee's salary structure, active loans and the period's
    additional earnings/deductions into one payroll calculation: earnings,
    deductions (statutory, loan, advances, other), employer contributions
    and net salary.
Architecture position:
    Engines -- pure calculation layer, zero I/O.  Composes
    ``StatutoryContributionCalculator``.  Loan state arrives as
    ``LoanSnapshot`` values built by the loans module; the calculator only
    reads them.  Marking installments paid is the caller's job, driven by
    ``PayrollDeductions.loan_deductions``.
Invariants enforced:
    - gross = basic + sum(allowances) + overtime + bonuses + other.
    - At most one installment per loan per calculation: the lowest-numbered
      pending installment of each active loan.
    - total_deductions = employee contribution + loan repayment
      + advances + other.
    - net_salary == earnings.total - deductions.total, rounded to 2 places.
Failure modes:
    - ValidationError when basic salary is missing or negative, or any
      allowance / additional amount is negative.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from forecourt_config.schema import StatutoryRates
from forecourt_engines.statutory import StatutoryContributionCalculator
from forecourt_engines.tracer import traced_engine
from forecourt_kernel.db.types import ZERO, round_money, to_decimal
from forecourt_kernel.exceptions import ValidationError
from forecourt_kernel.logging_config import get_logger

logger = get_logger("engines.payroll_calculator")

ACTIVE_LOAN_STATUS = "active"
PENDING_INSTALLMENT_STATUS = "pending"


def _non_negative(name: str, value: Any) -> Decimal:
    if value is None:
        raise ValidationError(name, "is required")
    amount = round_money(to_decimal(value))
    if amount < 0:
        raise ValidationError(name, f"cannot be negative, got {amount}")
    return amount


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class Allowance:
    """A recurring allowance on top of basic salary."""

    allowance_type: str
    amount: Decimal


@dataclass(frozen=True)
class SalaryStructure:
    """Salary fields of one employee as the calculator needs them."""

    basic_salary: Decimal | None
    allowances: tuple[Allowance, ...] = ()
    employee_id: Any = None


@dataclass(frozen=True)
class InstallmentSnapshot:
    installment_number: int
    due_date: date
    amount: Decimal
    status: str


@dataclass(frozen=True)
class LoanSnapshot:
    """Read-only view of a loan and its schedule."""

    loan_id: Any
    status: str
    installments: tuple[InstallmentSnapshot, ...]

    def next_pending_installment(self) -> InstallmentSnapshot | None:
        pending = [i for i in self.installments if i.status == PENDING_INSTALLMENT_STATUS]
        if not pending:
            return None
        return min(pending, key=lambda i: i.installment_number)


@dataclass(frozen=True)
class AdditionalEarnings:
    overtime: Decimal = ZERO
    bonuses: Decimal = ZERO
    other: Decimal = ZERO

    def __post_init__(self):
        for name in ("overtime", "bonuses", "other"):
            object.__setattr__(self, name, _non_negative(name, getattr(self, name)))


@dataclass(frozen=True)
class AdditionalDeductions:
    advances: Decimal = ZERO
    other: Decimal = ZERO

    def __post_init__(self):
        for name in ("advances", "other"):
            object.__setattr__(self, name, _non_negative(name, getattr(self, name)))


# =============================================================================
# Outputs
# =============================================================================


@dataclass(frozen=True)
class LoanDeduction:
    """One installment consumed by a payroll."""

    loan_id: Any
    installment_number: int
    amount: Decimal


@dataclass(frozen=True)
class PayrollEarnings:
    basic_salary: Decimal
    allowances: tuple[Allowance, ...]
    allowances_total: Decimal
    overtime: Decimal
    bonuses: Decimal
    other: Decimal

    @property
    def total(self) -> Decimal:
        return self.basic_salary + self.allowances_total + self.overtime + self.bonuses + self.other


@dataclass(frozen=True)
class PayrollDeductions:
    employee_contribution: Decimal
    loan_deductions: tuple[LoanDeduction, ...]
    advances: Decimal
    other: Decimal

    @property
    def loan_repayment(self) -> Decimal:
        return sum((d.amount for d in self.loan_deductions), ZERO)

    @property
    def total(self) -> Decimal:
        return self.employee_contribution + self.loan_repayment + self.advances + self.other


@dataclass(frozen=True)
class EmployerContributions:
    employer_contribution: Decimal
    employer_levy: Decimal

    @property
    def total(self) -> Decimal:
        return self.employer_contribution + self.employer_levy


@dataclass(frozen=True)
class PayrollCalculation:
    """
    Result of one payroll calculation.

    Guarantees:
        net_salary == earnings.total - deductions.total
    """

    earnings: PayrollEarnings
    deductions: PayrollDeductions
    contributions: EmployerContributions
    net_salary: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self, "net_salary", round_money(self.earnings.total - self.deductions.total)
        )

    @property
    def cost_to_company(self) -> Decimal:
        return self.earnings.total + self.contributions.total


# =============================================================================
# Calculator
# =============================================================================


class PayrollCalculator:
    """
    Payroll calculator bound to one set of statutory rates.

    Usage:
        calculator = PayrollCalculator(config.statutory)
        result = calculator.calculate(
            SalaryStructure(basic_salary=Decimal("50000")),
            active_loans=[loan_snapshot],
        )
        result.net_salary  # Decimal("44770.00") with one 1230.00 installment
    """

    def __init__(self, rates: StatutoryRates):
        self._statutory = StatutoryContributionCalculator(rates)

    @property
    def rates(self) -> StatutoryRates:
        return self._statutory.rates

    def build_earnings(
        self,
        employee: SalaryStructure,
        extra_earnings: AdditionalEarnings | None = None,
    ) -> PayrollEarnings:
        """Validate salary fields and assemble the earnings block."""
        basic = _non_negative("basic_salary", employee.basic_salary)
        allowances = tuple(
            Allowance(a.allowance_type, _non_negative(f"allowance[{a.allowance_type}]", a.amount))
            for a in employee.allowances
        )
        extra = extra_earnings or AdditionalEarnings()
        return PayrollEarnings(
            basic_salary=basic,
            allowances=allowances,
            allowances_total=sum((a.amount for a in allowances), ZERO),
            overtime=extra.overtime,
            bonuses=extra.bonuses,
            other=extra.other,
        )

    @staticmethod
    def select_loan_deductions(active_loans: Sequence[LoanSnapshot]) -> tuple[LoanDeduction, ...]:
        """Next pending installment of every active loan, one per loan."""
        deductions: list[LoanDeduction] = []
        for loan in active_loans:
            if loan.status != ACTIVE_LOAN_STATUS:
                continue
            installment = loan.next_pending_installment()
            if installment is None:
                continue
            deductions.append(
                LoanDeduction(
                    loan_id=loan.loan_id,
                    installment_number=installment.installment_number,
                    amount=round_money(installment.amount),
                )
            )
        return tuple(deductions)

    def calculate_from_earnings(
        self,
        earnings: PayrollEarnings,
        loan_deductions: tuple[LoanDeduction, ...],
        extra_deductions: AdditionalDeductions | None = None,
        contributions_override: tuple[Decimal, Decimal, Decimal] | None = None,
    ) -> PayrollCalculation:
        """
        Second half of the calculation, reused when a stored payroll is revised.

        ``contributions_override`` is ``(employee, employer, levy)``; when
        given, statutory amounts are taken as-is instead of recomputed.
        """
        extra = extra_deductions or AdditionalDeductions()
        if contributions_override is None:
            statutory = self._statutory.calculate(earnings.total)
            employee_part = statutory.employee_contribution
            employer_part = statutory.employer_contribution
            levy = statutory.employer_levy
        else:
            employee_part, employer_part, levy = contributions_override

        return PayrollCalculation(
            earnings=earnings,
            deductions=PayrollDeductions(
                employee_contribution=employee_part,
                loan_deductions=loan_deductions,
                advances=extra.advances,
                other=extra.other,
            ),
            contributions=EmployerContributions(
                employer_contribution=employer_part,
                employer_levy=levy,
            ),
        )

    @traced_engine("payroll_calculator", "1.0", fingerprint_fields=("employee",))
    def calculate(
        self,
        employee: SalaryStructure,
        active_loans: Sequence[LoanSnapshot] = (),
        extra_earnings: AdditionalEarnings | None = None,
        extra_deductions: AdditionalDeductions | None = None,
    ) -> PayrollCalculation:
        """Run the full calculation for one employee and period."""
        earnings = self.build_earnings(employee, extra_earnings)
        loan_deductions = self.select_loan_deductions(active_loans)
        result = self.calculate_from_earnings(earnings, loan_deductions, extra_deductions)

        logger.debug(
            "payroll_calculated",
            extra={
                "employee_id": str(employee.employee_id) if employee.employee_id else None,
                "gross_salary": str(result.earnings.total),
                "total_deductions": str(result.deductions.total),
                "net_salary": str(result.net_salary),
                "loan_deductions": len(loan_deductions),
            },
        )
        return result

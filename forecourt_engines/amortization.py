"""
Module: forecourt_engines.amortization
Responsibility:
    Generate the fixed-installment repayment schedule for an employee loan
    under flat simple interest.
Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by LoanService
    when a loan is created or re-priced.
Invariants enforced:
    - interest = principal x annual_rate x months / 12, rounded to 2 places.
    - Installment amounts sum EXACTLY to total_repayable: installments
      1..n-1 carry the rounded monthly installment and the final
      installment absorbs the rounding remainder.  When rounding up would
      leave the final installment negative (a tiny principal over a long
      term) the monthly installment is rounded down instead, so early
      installments may be 0.00.
    - remaining_balance is non-increasing and ends at 0.00.
    - Installment i falls due i months after the start date, on the same
      day of month (clamped to the month's last day).
Failure modes:
    - InvalidAmountError for non-positive principal.
    - ValidationError for non-positive duration or negative rate.
Audit relevance:
    The schedule is persisted verbatim on the loan; payroll deducts the
    stored amounts, so the exact-sum guarantee keeps remaining_amount and
    the schedule in agreement to the cent.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal

from forecourt_engines.tracer import traced_engine
from forecourt_kernel.db.types import ZERO, round_money, to_decimal
from forecourt_kernel.exceptions import InvalidAmountError, ValidationError
from forecourt_kernel.logging_config import get_logger

logger = get_logger("engines.amortization")


@dataclass(frozen=True)
class ScheduledInstallment:
    """One row of an amortization schedule."""

    installment_number: int
    due_date: date
    amount: Decimal
    remaining_balance: Decimal


@dataclass(frozen=True)
class LoanSchedule:
    """
    Complete repayment schedule.

    Guarantees:
        - ``sum(i.amount for i in installments) == total_repayable``.
        - ``installments[-1].remaining_balance == 0``.
    """

    principal: Decimal
    annual_rate: Decimal
    months: int
    start_date: date
    interest_amount: Decimal
    total_repayable: Decimal
    monthly_installment: Decimal
    installments: tuple[ScheduledInstallment, ...]

    @property
    def end_date(self) -> date:
        """Due date of the final installment."""
        return self.installments[-1].due_date

    @property
    def final_installment_adjustment(self) -> Decimal:
        """Rounding remainder carried by the final installment."""
        return self.installments[-1].amount - self.monthly_installment


def add_months(start: date, months: int) -> date:
    """Same day-of-month ``months`` later, clamped to the month's last day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_interest(principal: Decimal, annual_rate: Decimal, months: int) -> Decimal:
    """
    Flat simple interest for the whole term.

    Preconditions: ``annual_rate`` is a percentage (23 means 23%).
    Postconditions: Returns interest rounded to 0.01.
    """
    return round_money(principal * annual_rate * Decimal(months) / Decimal(1200))


@traced_engine(
    "amortization", "1.0",
    fingerprint_fields=("principal", "months", "start_date", "annual_rate"),
)
def compute_loan_schedule(
    principal: Decimal,
    months: int,
    start_date: date,
    annual_rate: Decimal,
) -> LoanSchedule:
    """
    Build the repayment schedule for a loan.

    Args:
        principal: Amount lent (> 0).
        months: Number of monthly installments (> 0).
        start_date: Disbursement date; the first installment falls due one
            month later.
        annual_rate: Annual simple-interest rate in percent (>= 0).

    Returns:
        LoanSchedule with ``months`` installments.

    Example:
        compute_loan_schedule(Decimal("12000"), 12, date(2024, 1, 15), Decimal("23"))
        -> interest 2760.00, total 14760.00, 12 x 1230.00
    """
    principal = round_money(to_decimal(principal))
    annual_rate = to_decimal(annual_rate)

    if principal <= 0:
        raise InvalidAmountError("principal", principal)
    if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
        raise ValidationError("months", f"must be a positive integer, got {months!r}")
    if annual_rate < 0:
        raise ValidationError("annual_rate", f"cannot be negative, got {annual_rate}")

    interest = calculate_interest(principal, annual_rate, months)
    total = principal + interest
    monthly = round_money(total / Decimal(months))
    if monthly * (months - 1) > total:
        monthly = round_money(total / Decimal(months), rounding=ROUND_DOWN)

    installments: list[ScheduledInstallment] = []
    paid_so_far = ZERO
    for number in range(1, months + 1):
        amount = monthly if number < months else total - paid_so_far
        paid_so_far += amount
        installments.append(
            ScheduledInstallment(
                installment_number=number,
                due_date=add_months(start_date, number),
                amount=amount,
                remaining_balance=max(ZERO, total - paid_so_far),
            )
        )

    schedule = LoanSchedule(
        principal=principal,
        annual_rate=annual_rate,
        months=months,
        start_date=start_date,
        interest_amount=interest,
        total_repayable=total,
        monthly_installment=monthly,
        installments=tuple(installments),
    )

    if schedule.final_installment_adjustment != 0:
        logger.debug(
            "amortization_final_installment_adjusted",
            extra={
                "monthly_installment": str(monthly),
                "final_installment": str(installments[-1].amount),
            },
        )
    return schedule

"""
Payroll Domain Models (``forecourt_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of payroll:
employees, monthly payroll records with their earnings / deductions /
contributions breakdown, and the results of batch generation and batch
payment.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``PayrollService`` and ``PayrollPaymentProcessor``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``Payroll.net_salary == total_earnings - total_deductions``.
* ``BatchPaymentResult.total_paid == sum(s.amount for s in succeeded)``.

Audit relevance
---------------
* A payroll carries the bank transaction that paid it; a cancelled
  payment keeps that reference and is refunded by a compensating
  transaction.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PayrollStatus(str, Enum):
    """Payroll payment states."""
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class EmployeeAllowance:
    allowance_type: str
    amount: Decimal


@dataclass(frozen=True)
class Employee:
    """An employee for payroll purposes."""
    id: UUID
    employee_code: str
    name: str
    basic_salary: Decimal
    is_active: bool = True
    allowances: tuple[EmployeeAllowance, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PayrollLoanDeduction:
    """One loan installment withheld by a payroll."""
    loan_id: UUID
    installment_number: int
    amount: Decimal


@dataclass(frozen=True)
class Payroll:
    """A monthly payroll record for one employee."""
    id: UUID
    payroll_number: str
    employee_id: UUID
    pay_month: int
    pay_year: int
    basic_salary: Decimal
    allowances: tuple[EmployeeAllowance, ...]
    allowances_total: Decimal
    overtime: Decimal
    bonuses: Decimal
    other_earnings: Decimal
    total_earnings: Decimal
    employee_contribution: Decimal
    loan_repayment: Decimal
    advances: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    employer_contribution: Decimal
    employer_levy: Decimal
    total_contributions: Decimal
    net_salary: Decimal
    cost_to_company: Decimal
    payment_status: PayrollStatus
    loan_deductions: tuple[PayrollLoanDeduction, ...] = field(default_factory=tuple)
    payment_date: date | None = None
    bank_transaction_id: UUID | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class PayrollGenerationFailure:
    employee_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class PayrollGenerationBatchResult:
    """Outcome of generating payroll for several employees."""
    succeeded: tuple[Payroll, ...]
    failed: tuple[PayrollGenerationFailure, ...]


@dataclass(frozen=True)
class BatchPaymentSuccess:
    payroll_id: UUID
    bank_transaction_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class BatchPaymentFailure:
    payroll_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class BatchPaymentResult:
    """
    Outcome of paying several payrolls from one bank account.

    ``skipped`` lists requested ids that were not pending (or unknown).
    """
    bank_account_id: UUID
    succeeded: tuple[BatchPaymentSuccess, ...]
    failed: tuple[BatchPaymentFailure, ...]
    skipped: tuple[UUID, ...]
    total_requested: Decimal
    total_paid: Decimal
    closing_balance: Decimal

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

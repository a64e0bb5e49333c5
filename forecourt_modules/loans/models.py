"""
Employee Loan Domain Models (``forecourt_modules.loans.models``).

Responsibility
--------------
Frozen dataclass value objects for employee loans and their installment
schedules.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``LoanService``.  The payroll calculator consumes the lighter
``LoanSnapshot`` from ``forecourt_engines.payroll_calculator`` instead.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``sum(i.amount for i in installments) == total_repayable``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class LoanStatus(str, Enum):
    """Loan lifecycle states."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class LoanInstallment:
    """One scheduled repayment."""
    id: UUID
    loan_id: UUID
    installment_number: int
    due_date: date
    amount: Decimal
    remaining_balance: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_date: date | None = None
    payroll_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Loan:
    """An employee loan with its full schedule."""
    id: UUID
    loan_number: str
    employee_id: UUID
    principal: Decimal
    interest_rate: Decimal
    interest_amount: Decimal
    total_repayable: Decimal
    installment_amount: Decimal
    duration_months: int
    start_date: date
    end_date: date
    remaining_amount: Decimal
    status: LoanStatus
    purpose: str | None = None
    approved_by_id: UUID | None = None
    approval_date: date | None = None
    rejection_reason: str | None = None
    installments: tuple[LoanInstallment, ...] = field(default_factory=tuple)

    @property
    def paid_installments(self) -> int:
        return sum(1 for i in self.installments if i.status is InstallmentStatus.PAID)

"""
forecourt_modules.cash.models
=============================

Responsibility:
    Frozen dataclass value objects for the bank book -- bank accounts,
    their append-only transactions, and balance verification results.

Architecture:
    Module layer.  In-memory DTOs, NOT SQLAlchemy ORM models.  Returned by
    CashService and embedded in payment results.

Invariants enforced:
    - All monetary fields use ``Decimal`` -- never ``float``.
    - All DTOs are frozen.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TransactionType(str, Enum):
    """Direction of a bank transaction."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionCategory(str, Enum):
    SALARY = "Salary"
    INVOICE_PAYMENT = "Invoice Payment"
    REVERSAL = "Reversal"
    OTHER = "Other"


@dataclass(frozen=True)
class BankAccount:
    """A bank account whose balance the engine maintains."""
    id: UUID
    account_code: str
    name: str
    bank_name: str
    account_number: str
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class BankTransaction:
    """
    One immutable movement on a bank account.

    ``balance_after`` is the account balance immediately after this
    transaction was applied.
    """
    id: UUID
    transaction_number: str
    bank_account_id: UUID
    transaction_date: date
    transaction_type: TransactionType
    amount: Decimal
    balance_after: Decimal
    description: str
    category: str
    source_type: str | None = None
    source_id: UUID | None = None
    reverses_transaction_id: UUID | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.transaction_type is TransactionType.DEPOSIT else -self.amount


@dataclass(frozen=True)
class BalanceCheck:
    """Result of rebuilding an account balance from its transactions."""
    bank_account_id: UUID
    opening_balance: Decimal
    transactions_total: Decimal
    expected_balance: Decimal
    current_balance: Decimal
    transaction_count: int

    @property
    def is_consistent(self) -> bool:
        return self.expected_balance == self.current_balance

    @property
    def difference(self) -> Decimal:
        return self.current_balance - self.expected_balance

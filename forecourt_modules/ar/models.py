"""
Accounts Receivable Domain Models (``forecourt_modules.ar.models``).

Responsibility
--------------
Frozen dataclass value objects for receivables: customers with their
embedded credit account, invoices, invoice items and invoice payments.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``InvoiceService`` and ``CreditAccountService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``CreditAccount.available_credit == credit_limit - current_balance``.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from forecourt_engines.invoice_totals import DiscountType, InvoicePaymentStatus


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHECK = "Check"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"


class CreditStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    CLOSED = "Closed"


@dataclass(frozen=True)
class CreditAccount:
    """A customer's running credit balance and its limits."""
    customer_id: UUID
    credit_enabled: bool
    credit_limit: Decimal
    current_balance: Decimal
    available_credit: Decimal
    credit_status: CreditStatus
    payment_terms_days: int = 30

    @property
    def is_usable(self) -> bool:
        return self.credit_enabled and self.credit_status is CreditStatus.ACTIVE


@dataclass(frozen=True)
class Customer:
    """A forecourt customer, optionally trading on credit."""
    id: UUID
    customer_code: str
    name: str
    is_active: bool
    credit: CreditAccount


@dataclass(frozen=True)
class InvoiceItemInput:
    """Caller-supplied line for a manual invoice."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    fuel_type: str | None = None


@dataclass(frozen=True)
class InvoiceItem:
    """A stored invoice line."""
    id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    fuel_type: str | None = None


@dataclass(frozen=True)
class InvoicePayment:
    """One payment received against an invoice (append-only)."""
    id: UUID
    invoice_id: UUID
    payment_date: date
    amount: Decimal
    method: PaymentMethod
    reference: str | None = None
    bank_account_id: UUID | None = None
    bank_transaction_id: UUID | None = None
    notes: str | None = None
    received_by_id: UUID | None = None


@dataclass(frozen=True)
class Invoice:
    """
    A customer invoice with all derived amounts.

    Guarantees:
        total_amount == subtotal + tax_amount - discount_amount
        amount_due == total_amount - amount_paid
    """
    id: UUID
    invoice_number: str
    customer_id: UUID
    issue_date: date
    due_date: date
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    payment_status: InvoicePaymentStatus
    on_credit_account: bool = False
    notes: str | None = None
    billing_start: date | None = None
    billing_end: date | None = None
    items: tuple[InvoiceItem, ...] = field(default_factory=tuple)
    payments: tuple[InvoicePayment, ...] = field(default_factory=tuple)

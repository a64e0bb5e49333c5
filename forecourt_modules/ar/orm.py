"""
Accounts Receivable ORM Models (``forecourt_modules.ar.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the AR module.  Maps frozen domain
dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``forecourt_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``forecourt_kernel``
except through the ORM registry and the immutability guards.

Invariants enforced
-------------------
* ``ar_customers.version`` and ``ar_invoices.version`` are optimistic-lock
  columns (``version_id_col``).
* ``ar_invoice_payments`` rows are append-only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from forecourt_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# 1. CustomerModel
# ---------------------------------------------------------------------------


class CustomerModel(TrackedBase):
    """
    ORM model for customers and their embedded credit account.

    Guarantees:
        - customer_code is unique (uq_ar_customers_customer_code).
        - current_balance is never negative (ck_ar_customers_balance).
        - available_credit is rewritten on every credit mutation.
    """

    __tablename__ = "ar_customers"

    __table_args__ = (
        UniqueConstraint("customer_code", name="uq_ar_customers_customer_code"),
        CheckConstraint("current_balance >= 0", name="ck_ar_customers_balance"),
        Index("idx_ar_customers_is_active", "is_active"),
    )

    customer_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True)
    credit_enabled: Mapped[bool] = mapped_column(default=False)
    credit_limit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    available_credit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    credit_status: Mapped[str] = mapped_column(String(20), default="Active")
    payment_terms_days: Mapped[int] = mapped_column(default=30)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def credit_to_dto(self):
        from forecourt_modules.ar.models import CreditAccount, CreditStatus

        return CreditAccount(
            customer_id=self.id,
            credit_enabled=self.credit_enabled,
            credit_limit=self.credit_limit,
            current_balance=self.current_balance,
            available_credit=self.available_credit,
            credit_status=CreditStatus(self.credit_status),
            payment_terms_days=self.payment_terms_days,
        )

    def to_dto(self):
        from forecourt_modules.ar.models import Customer

        return Customer(
            id=self.id,
            customer_code=self.customer_code,
            name=self.name,
            is_active=self.is_active,
            credit=self.credit_to_dto(),
        )

    def __repr__(self) -> str:
        return (
            f"<CustomerModel {self.customer_code} "
            f"balance={self.current_balance} limit={self.credit_limit}>"
        )


# ---------------------------------------------------------------------------
# 2. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for customer invoices.

    Items and payments live in child tables, loaded eagerly and ordered.

    Guarantees:
        - invoice_number is unique (uq_ar_invoices_invoice_number).
        - payment_status stored as the enum value string.
        - Derived amounts are rewritten together after every mutation.
    """

    __tablename__ = "ar_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_ar_invoices_invoice_number"),
        Index("idx_ar_invoices_customer_id", "customer_id"),
        Index("idx_ar_invoices_payment_status", "payment_status"),
        Index("idx_ar_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_type: Mapped[str] = mapped_column(String(20), default="None")
    discount_value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), default="Unpaid")
    on_credit_account: Mapped[bool] = mapped_column(default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_start: Mapped[date | None] = mapped_column(nullable=True)
    billing_end: Mapped[date | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemModel.line_number",
        lazy="selectin",
    )
    payments: Mapped[list["InvoicePaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="save-update, merge",
        order_by="InvoicePaymentModel.payment_date",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from forecourt_engines.invoice_totals import DiscountType, InvoicePaymentStatus
        from forecourt_modules.ar.models import Invoice

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            customer_id=self.customer_id,
            issue_date=self.issue_date,
            due_date=self.due_date,
            subtotal=self.subtotal,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            discount_amount=self.discount_amount,
            total_amount=self.total_amount,
            amount_paid=self.amount_paid,
            amount_due=self.amount_due,
            payment_status=InvoicePaymentStatus(self.payment_status),
            on_credit_account=self.on_credit_account,
            notes=self.notes,
            billing_start=self.billing_start,
            billing_end=self.billing_end,
            items=tuple(item.to_dto() for item in self.items),
            payments=tuple(payment.to_dto() for payment in self.payments),
        )

    def __repr__(self) -> str:
        return (
            f"<InvoiceModel {self.invoice_number} "
            f"status={self.payment_status} due={self.amount_due}>"
        )


# ---------------------------------------------------------------------------
# 3. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TrackedBase):
    """ORM model for invoice line items."""

    __tablename__ = "ar_invoice_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_ar_invoice_items_line"),
        Index("idx_ar_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    fuel_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self):
        from forecourt_modules.ar.models import InvoiceItem

        return InvoiceItem(
            id=self.id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
            fuel_type=self.fuel_type,
        )

    def __repr__(self) -> str:
        return f"<InvoiceItemModel line={self.line_number} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 4. InvoicePaymentModel
# ---------------------------------------------------------------------------


class InvoicePaymentModel(TrackedBase):
    """
    ORM model for payments received against an invoice.

    Guarantees:
        - amount is strictly positive.
        - Append-only: UPDATE and DELETE are blocked by the kernel
          immutability listeners.
        - bank_transaction_id is set for Bank Transfer payments.
    """

    __tablename__ = "ar_invoice_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ar_invoice_payments_positive_amount"),
        Index("idx_ar_invoice_payments_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=False
    )
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cash_bank_accounts.id"), nullable=True
    )
    bank_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cash_bank_transactions.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="payments")

    def to_dto(self):
        from forecourt_modules.ar.models import InvoicePayment, PaymentMethod

        return InvoicePayment(
            id=self.id,
            invoice_id=self.invoice_id,
            payment_date=self.payment_date,
            amount=self.amount,
            method=PaymentMethod(self.method),
            reference=self.reference,
            bank_account_id=self.bank_account_id,
            bank_transaction_id=self.bank_transaction_id,
            notes=self.notes,
            received_by_id=self.received_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InvoicePaymentModel invoice={self.invoice_id} "
            f"amount={self.amount} method={self.method}>"
        )

"""
Module: forecourt_engines.invoice_totals
Responsibility:
    Derive every computed field of an invoice from its inputs: line
    amounts, subtotal, tax, discount, total, amount paid, amount due, and
    the payment status.
Architecture position:
    Engines -- pure calculation layer, zero I/O and no clock access; the
    caller supplies ``as_of``.  InvoiceService runs this after every
    mutation and copies the result onto the invoice row.
Invariants enforced:
    - total_amount == subtotal + tax_amount - discount_amount
    - amount_paid == sum(payments)
    - amount_due == total_amount - amount_paid
    - Status precedence: amount_due <= 0 -> Paid; amount_paid > 0 ->
      Partial; due date passed -> Overdue; otherwise Unpaid.
    - Recomputing from the same inputs yields identical output.
Failure modes:
    - ValidationError for negative quantities/prices, a tax rate outside
      0..100, an unknown discount type, a negative discount value, or a
      discount larger than subtotal + tax.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from forecourt_kernel.db.types import ZERO, round_money, to_decimal
from forecourt_kernel.exceptions import ValidationError

_HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    NONE = "None"
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


class InvoicePaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal


def line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """quantity x unit_price, rounded to 2 places."""
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    if quantity <= 0:
        raise ValidationError("quantity", f"must be greater than zero, got {quantity}")
    if unit_price < 0:
        raise ValidationError("unit_price", f"cannot be negative, got {unit_price}")
    return round_money(quantity * unit_price)


def calculate_discount(
    subtotal: Decimal,
    discount_type: DiscountType | str,
    discount_value: Decimal,
) -> Decimal:
    """Discount amount: percent of subtotal, a fixed value, or zero."""
    try:
        discount_type = DiscountType(discount_type)
    except ValueError:
        raise ValidationError("discount_type", f"unknown discount type {discount_type!r}") from None
    discount_value = to_decimal(discount_value)
    if discount_value < 0:
        raise ValidationError("discount_value", f"cannot be negative, got {discount_value}")

    if discount_type is DiscountType.PERCENTAGE:
        if discount_value > _HUNDRED:
            raise ValidationError("discount_value", "percentage discount cannot exceed 100")
        return round_money(subtotal * discount_value / _HUNDRED)
    if discount_type is DiscountType.FIXED:
        return round_money(discount_value)
    return ZERO


def compute_invoice_totals(
    line_amounts: Iterable[Decimal],
    tax_rate: Decimal = ZERO,
    discount_type: DiscountType | str = DiscountType.NONE,
    discount_value: Decimal = ZERO,
    payment_amounts: Iterable[Decimal] = (),
) -> InvoiceTotals:
    """
    Recompute all invoice amounts in the order subtotal -> tax -> discount
    -> total -> paid -> due.
    """
    tax_rate = to_decimal(tax_rate)
    if tax_rate < 0 or tax_rate > _HUNDRED:
        raise ValidationError("tax_rate", f"must be between 0 and 100, got {tax_rate}")

    subtotal = round_money(sum((to_decimal(a) for a in line_amounts), ZERO))
    tax_amount = round_money(subtotal * tax_rate / _HUNDRED)
    discount_amount = calculate_discount(subtotal, discount_type, discount_value)
    if discount_amount > subtotal + tax_amount:
        raise ValidationError(
            "discount_value",
            f"discount {discount_amount} exceeds subtotal plus tax {subtotal + tax_amount}",
        )
    total_amount = subtotal + tax_amount - discount_amount
    amount_paid = round_money(sum((to_decimal(p) for p in payment_amounts), ZERO))

    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=total_amount,
        amount_paid=amount_paid,
        amount_due=total_amount - amount_paid,
    )


def derive_payment_status(
    amount_due: Decimal,
    amount_paid: Decimal,
    due_date: date,
    as_of: date,
) -> InvoicePaymentStatus:
    """Status implied by the amounts and due date (never Cancelled)."""
    if amount_due <= 0:
        return InvoicePaymentStatus.PAID
    if amount_paid > 0:
        return InvoicePaymentStatus.PARTIAL
    if as_of > due_date:
        return InvoicePaymentStatus.OVERDUE
    return InvoicePaymentStatus.UNPAID

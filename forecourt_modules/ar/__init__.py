"""
Accounts Receivable Module.

Customer credit accounts and the invoice ledger: manual invoices,
invoices generated from credit sales, payments, revisions, cancellation,
overdue tracking and aging.  Services live in ``ar.credit`` and
``ar.service``.
"""

from forecourt_modules.ar.models import (
    CreditAccount,
    CreditStatus,
    Customer,
    Invoice,
    InvoiceItem,
    InvoiceItemInput,
    InvoicePayment,
    PaymentMethod,
)
from forecourt_modules.ar.workflows import INVOICE_WORKFLOW

__all__ = [
    "CreditAccount",
    "CreditStatus",
    "Customer",
    "Invoice",
    "InvoiceItem",
    "InvoiceItemInput",
    "InvoicePayment",
    "PaymentMethod",
    "INVOICE_WORKFLOW",
]

"""
Human-readable document numbers.

Format: ``<PREFIX>-<yyyymmdd>-<6 hex chars>``, e.g. ``INV-20240115-3FA9C1``.
Uniqueness is backed by a unique constraint on each number column; the
random suffix only has to make collisions within a day unlikely.
"""

from datetime import date
from uuid import uuid4

INVOICE_PREFIX = "INV"
PAYROLL_PREFIX = "PAY"
LOAN_PREFIX = "LN"
BANK_TRANSACTION_PREFIX = "BTX"


def document_number(prefix: str, on_date: date) -> str:
    """Return a new document number for ``prefix`` dated ``on_date``."""
    if not prefix or not prefix.isalnum():
        raise ValueError(f"Document prefix must be alphanumeric, got {prefix!r}")
    return f"{prefix.upper()}-{on_date:%Y%m%d}-{uuid4().hex[:6].upper()}"

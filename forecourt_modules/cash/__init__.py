"""
Cash Module.

Bank book: bank accounts and their append-only transactions.
``BankLedger`` (``cash.ledger``) is the session-bound building block used
by invoice and payroll payments; ``CashService`` (``cash.service``) is the
public boundary for stand-alone bank operations.
"""

from forecourt_modules.cash.models import (
    BalanceCheck,
    BankAccount,
    BankTransaction,
    TransactionCategory,
    TransactionType,
)

__all__ = [
    "BalanceCheck",
    "BankAccount",
    "BankTransaction",
    "TransactionCategory",
    "TransactionType",
]

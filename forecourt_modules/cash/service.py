"""
Cash Module Service (``forecourt_modules.cash.service``).

Responsibility
--------------
Public entry point for the bank book: open accounts, record stand-alone
deposits and withdrawals, and verify that an account's stored balance
matches its transaction history.

Architecture position
---------------------
**Modules layer** -- thin glue over ``BankLedger``.  Each public method
owns the transaction boundary unless constructed with
``auto_commit=False``.

Failure modes
-------------
* Ledger errors (not found, inactive, insufficient funds) propagate after
  rollback.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from forecourt_kernel.db.types import round_money, to_decimal
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import BankAccountNotFoundError, ValidationError
from forecourt_kernel.logging_config import get_logger
from forecourt_modules._unit_of_work import load, unit_of_work
from forecourt_modules.cash.ledger import BankLedger
from forecourt_modules.cash.models import (
    BalanceCheck,
    BankAccount,
    BankTransaction,
    TransactionCategory,
)
from forecourt_modules.cash.orm import BankAccountModel

logger = get_logger("modules.cash.service")


class CashService:
    """
    Bank-book operations.

    Transaction boundary: commits on success, rolls back on failure
    (``auto_commit=True``), or only flushes when composed.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._ledger = BankLedger(session, self._clock)

    def open_account(
        self,
        account_code: str,
        name: str,
        actor_id: UUID,
        opening_balance: Decimal = Decimal("0"),
        bank_name: str = "",
        account_number: str = "",
    ) -> BankAccount:
        opening_balance = round_money(to_decimal(opening_balance))
        if opening_balance < 0:
            raise ValidationError("opening_balance", "cannot be negative")
        if not account_code:
            raise ValidationError("account_code", "is required")

        with unit_of_work(
            self._session, logger, "open_bank_account",
            auto_commit=self._auto_commit, actor_id=actor_id,
        ):
            account = BankAccountModel(
                account_code=account_code,
                name=name,
                bank_name=bank_name,
                account_number=account_number,
                opening_balance=opening_balance,
                current_balance=opening_balance,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(account)
            self._session.flush()
            logger.info("bank_account_opened", extra={
                "bank_account_id": str(account.id),
                "account_code": account_code,
                "opening_balance": str(opening_balance),
            })
        return account.to_dto()

    def record_deposit(
        self,
        account_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        description: str = "Deposit",
        category: str = TransactionCategory.OTHER.value,
        transaction_date: date | None = None,
    ) -> BankTransaction:
        with unit_of_work(
            self._session, logger, "record_deposit",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="BankAccount", entity_id=account_id,
        ):
            account = self._ledger.lock_account(account_id)
            txn = self._ledger.deposit(
                account, amount, actor_id=actor_id, description=description,
                category=category, transaction_date=transaction_date,
            )
        return txn.to_dto()

    def record_withdrawal(
        self,
        account_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        description: str = "Withdrawal",
        category: str = TransactionCategory.OTHER.value,
        transaction_date: date | None = None,
    ) -> BankTransaction:
        with unit_of_work(
            self._session, logger, "record_withdrawal",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="BankAccount", entity_id=account_id,
        ):
            account = self._ledger.lock_account(account_id)
            txn = self._ledger.withdraw(
                account, amount, actor_id=actor_id, description=description,
                category=category, transaction_date=transaction_date,
            )
        return txn.to_dto()

    def get_account(self, account_id: UUID) -> BankAccount:
        return load(self._session, BankAccountModel, account_id, BankAccountNotFoundError).to_dto()

    def verify_balance(self, account_id: UUID) -> BalanceCheck:
        """Rebuild the balance from opening balance plus transactions."""
        account = load(self._session, BankAccountModel, account_id, BankAccountNotFoundError)
        expected, count = self._ledger.computed_balance(account)
        check = BalanceCheck(
            bank_account_id=account.id,
            opening_balance=round_money(account.opening_balance),
            transactions_total=expected - round_money(account.opening_balance),
            expected_balance=expected,
            current_balance=round_money(account.current_balance),
            transaction_count=count,
        )
        if not check.is_consistent:
            logger.error("bank_balance_mismatch", extra={
                "bank_account_id": str(account.id),
                "expected_balance": str(expected),
                "current_balance": str(check.current_balance),
            })
        return check

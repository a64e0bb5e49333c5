"""
Bank Ledger (``forecourt_modules.cash.ledger``).

Responsibility
--------------
Session-bound building block that moves money on a bank account: lock
the account row, append a deposit / withdrawal / reversal transaction and
update ``current_balance`` in the same flush.  It never commits; the
service that composes it (cash, invoicing, payroll payments) owns the
transaction boundary.

Invariants enforced
-------------------
* ``current_balance == opening_balance + sum(signed transaction amounts)``
  because every balance change goes through ``_append``.
* A withdrawal never takes the balance below zero.
* A transaction is reversed at most once, by a new compensating
  transaction; nothing is updated or deleted.

Failure modes
-------------
* ``BankAccountNotFoundError`` / ``BankTransactionNotFoundError``.
* ``ValidationError`` for an inactive account.
* ``InvalidAmountError`` for a non-positive amount.
* ``InsufficientFundsError`` carrying required / available amounts.
* ``IllegalTransitionError`` when reversing an already-reversed transaction.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from forecourt_kernel.db.types import round_money, to_decimal
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import (
    BankAccountNotFoundError,
    BankTransactionNotFoundError,
    IllegalTransitionError,
    InsufficientFundsError,
    InvalidAmountError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_kernel.utils.numbering import BANK_TRANSACTION_PREFIX, document_number
from forecourt_modules._unit_of_work import load, load_for_update
from forecourt_modules.cash.models import TransactionCategory, TransactionType
from forecourt_modules.cash.orm import BankAccountModel, BankTransactionModel

logger = get_logger("modules.cash.ledger")


class BankLedger:
    """Balance-maintaining operations on bank accounts (no commit)."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def lock_account(self, account_id: UUID, *, require_active: bool = True) -> BankAccountModel:
        """Load the account with ``SELECT ... FOR UPDATE``."""
        account = load_for_update(self._session, BankAccountModel, account_id, BankAccountNotFoundError)
        if require_active and not account.is_active:
            raise ValidationError("bank_account_id", f"bank account {account_id} is inactive")
        return account

    def ensure_funds(self, account: BankAccountModel, required: Decimal) -> None:
        if account.current_balance < required:
            logger.warning(
                "bank_insufficient_funds",
                extra={
                    "bank_account_id": str(account.id),
                    "required": str(required),
                    "available": str(account.current_balance),
                },
            )
            raise InsufficientFundsError(
                account_id=str(account.id),
                required=round_money(required),
                available=round_money(account.current_balance),
            )

    def deposit(
        self,
        account: BankAccountModel,
        amount: Decimal,
        *,
        actor_id: UUID,
        description: str,
        category: str = TransactionCategory.OTHER.value,
        transaction_date: date | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
        reverses_transaction_id: UUID | None = None,
    ) -> BankTransactionModel:
        return self._append(
            account, TransactionType.DEPOSIT, amount,
            actor_id=actor_id, description=description, category=category,
            transaction_date=transaction_date, source_type=source_type,
            source_id=source_id, reverses_transaction_id=reverses_transaction_id,
        )

    def withdraw(
        self,
        account: BankAccountModel,
        amount: Decimal,
        *,
        actor_id: UUID,
        description: str,
        category: str = TransactionCategory.OTHER.value,
        transaction_date: date | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
        reverses_transaction_id: UUID | None = None,
    ) -> BankTransactionModel:
        return self._append(
            account, TransactionType.WITHDRAWAL, amount,
            actor_id=actor_id, description=description, category=category,
            transaction_date=transaction_date, source_type=source_type,
            source_id=source_id, reverses_transaction_id=reverses_transaction_id,
        )

    def reverse(
        self,
        transaction_id: UUID,
        *,
        actor_id: UUID,
        reason: str,
        transaction_date: date | None = None,
    ) -> BankTransactionModel:
        """Append the opposite movement for ``transaction_id``."""
        original = load(self._session, BankTransactionModel, transaction_id, BankTransactionNotFoundError)
        already = self._session.execute(
            select(BankTransactionModel.id).where(
                BankTransactionModel.reverses_transaction_id == original.id
            )
        ).first()
        if already is not None:
            raise IllegalTransitionError(
                entity_type="BankTransaction",
                entity_id=str(original.id),
                from_state="reversed",
                action="reverse",
            )

        account = self.lock_account(original.bank_account_id, require_active=False)
        opposite = (
            TransactionType.DEPOSIT
            if original.transaction_type == TransactionType.WITHDRAWAL.value
            else TransactionType.WITHDRAWAL
        )
        return self._append(
            account, opposite, original.amount,
            actor_id=actor_id,
            description=f"Reversal of {original.transaction_number}: {reason}",
            category=TransactionCategory.REVERSAL.value,
            transaction_date=transaction_date,
            source_type=original.source_type,
            source_id=original.source_id,
            reverses_transaction_id=original.id,
        )

    def computed_balance(self, account: BankAccountModel) -> tuple[Decimal, int]:
        """(opening + signed sum of transactions, transaction count)."""
        signed = case(
            (BankTransactionModel.transaction_type == TransactionType.DEPOSIT.value,
             BankTransactionModel.amount),
            else_=-BankTransactionModel.amount,
        )
        total, count = self._session.execute(
            select(func.coalesce(func.sum(signed), 0), func.count(BankTransactionModel.id))
            .where(BankTransactionModel.bank_account_id == account.id)
        ).one()
        return round_money(account.opening_balance + to_decimal(total)), count

    def _append(
        self,
        account: BankAccountModel,
        transaction_type: TransactionType,
        amount: Decimal,
        *,
        actor_id: UUID,
        description: str,
        category: str,
        transaction_date: date | None,
        source_type: str | None,
        source_id: UUID | None,
        reverses_transaction_id: UUID | None,
    ) -> BankTransactionModel:
        amount = round_money(to_decimal(amount))
        if amount <= 0:
            raise InvalidAmountError("amount", amount)

        if transaction_type is TransactionType.WITHDRAWAL:
            self.ensure_funds(account, amount)
            new_balance = account.current_balance - amount
        else:
            new_balance = account.current_balance + amount
        new_balance = round_money(new_balance)

        on_date = transaction_date or self._clock.today()
        txn = BankTransactionModel(
            transaction_number=document_number(BANK_TRANSACTION_PREFIX, on_date),
            bank_account_id=account.id,
            transaction_date=on_date,
            transaction_type=transaction_type.value,
            amount=amount,
            balance_after=new_balance,
            description=description,
            category=category,
            source_type=source_type,
            source_id=source_id,
            reverses_transaction_id=reverses_transaction_id,
            created_by_id=actor_id,
        )
        account.current_balance = new_balance
        account.updated_by_id = actor_id
        self._session.add(txn)
        self._session.flush()

        logger.info(
            "bank_transaction_recorded",
            extra={
                "bank_account_id": str(account.id),
                "transaction_id": str(txn.id),
                "transaction_type": transaction_type.value,
                "amount": str(amount),
                "balance_after": str(new_balance),
                "category": category,
                "source_type": source_type,
            },
        )
        return txn

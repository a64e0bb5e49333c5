"""
Bank Book ORM Models (``forecourt_modules.cash.orm``).

Responsibility
--------------
SQLAlchemy persistence for bank accounts and their transactions.  Maps
the frozen DTOs in ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``forecourt_kernel.db.base``
and sibling ``models.py``.

Invariants enforced
-------------------
* ``cash_bank_accounts.version`` is the optimistic-lock column; a stale
  balance write raises ``StaleDataError`` at flush.
* Transactions are append-only (see ``forecourt_kernel.db.immutability``).
* ``amount`` is strictly positive; direction lives in ``transaction_type``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from forecourt_kernel.db.base import TrackedBase


class BankAccountModel(TrackedBase):
    """
    ORM model for ``BankAccount``.

    Table: ``cash_bank_accounts``
    """

    __tablename__ = "cash_bank_accounts"

    account_code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    bank_name: Mapped[str] = mapped_column(String(200), default="")
    account_number: Mapped[str] = mapped_column(String(50), default="")
    opening_balance: Mapped[Decimal]
    current_balance: Mapped[Decimal]
    is_active: Mapped[bool] = mapped_column(default=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("account_code", name="uq_cash_bank_accounts_account_code"),
        CheckConstraint("current_balance >= 0", name="ck_cash_bank_accounts_non_negative"),
    )

    def to_dto(self):
        from forecourt_modules.cash.models import BankAccount
        return BankAccount(
            id=self.id,
            account_code=self.account_code,
            name=self.name,
            bank_name=self.bank_name,
            account_number=self.account_number,
            opening_balance=self.opening_balance,
            current_balance=self.current_balance,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return (
            f"<BankAccountModel(id={self.id!r}, code={self.account_code!r}, "
            f"balance={self.current_balance!r})>"
        )


class BankTransactionModel(TrackedBase):
    """
    ORM model for ``BankTransaction`` -- one append-only movement.

    Table: ``cash_bank_transactions``
    """

    __tablename__ = "cash_bank_transactions"

    transaction_number: Mapped[str] = mapped_column(String(50))
    bank_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_accounts.id"),
    )
    transaction_date: Mapped[date]
    transaction_type: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal]
    balance_after: Mapped[Decimal]
    description: Mapped[str] = mapped_column(String(500), default="")
    category: Mapped[str] = mapped_column(String(50), default="Other")
    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_id: Mapped[UUID | None]
    reverses_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cash_bank_transactions.id"), nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "transaction_number", name="uq_cash_bank_transactions_transaction_number",
        ),
        UniqueConstraint(
            "reverses_transaction_id", name="uq_cash_bank_transactions_reverses",
        ),
        CheckConstraint("amount > 0", name="ck_cash_bank_transactions_positive_amount"),
        Index("idx_cash_bank_transactions_bank_account_id", "bank_account_id"),
        Index("idx_cash_bank_transactions_source", "source_type", "source_id"),
    )

    def to_dto(self):
        from forecourt_modules.cash.models import BankTransaction, TransactionType
        return BankTransaction(
            id=self.id,
            transaction_number=self.transaction_number,
            bank_account_id=self.bank_account_id,
            transaction_date=self.transaction_date,
            transaction_type=TransactionType(self.transaction_type),
            amount=self.amount,
            balance_after=self.balance_after,
            description=self.description,
            category=self.category,
            source_type=self.source_type,
            source_id=self.source_id,
            reverses_transaction_id=self.reverses_transaction_id,
        )

    def __repr__(self) -> str:
        return (
            f"<BankTransactionModel(id={self.id!r}, "
            f"type={self.transaction_type!r}, amount={self.amount!r})>"
        )

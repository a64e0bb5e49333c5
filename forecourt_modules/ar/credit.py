"""
Customer Credit Account (``forecourt_modules.ar.credit``).

Responsibility
--------------
Maintain a customer's running credit balance: increase it when a credit
invoice is issued, decrease it when such an invoice is paid or cancelled,
and answer whether a new charge fits the customer's limit.

Architecture position
---------------------
**Modules layer** -- service.  ``InvoiceService`` composes this service
with ``auto_commit=False`` so that the credit balance and the invoice are
written in one transaction.

Invariants enforced
-------------------
* ``available_credit == credit_limit - current_balance`` after every
  mutation.
* An operation never takes ``current_balance`` below zero.
* The customer row is read with ``SELECT ... FOR UPDATE`` and carries an
  optimistic-lock version.

Failure modes
-------------
* ``InvalidAmountError`` for a non-positive amount.
* ``CreditBalanceUnderflowError`` when a decrease exceeds the balance.
* ``CustomerNotFoundError``.
* ``ValidationError`` for a negative limit or negative payment terms.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from forecourt_kernel.db.types import round_money, to_decimal
from forecourt_kernel.exceptions import (
    CreditBalanceUnderflowError,
    CustomerNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_modules._unit_of_work import load, load_for_update, unit_of_work
from forecourt_modules.ar.models import CreditAccount, CreditStatus
from forecourt_modules.ar.orm import CustomerModel

logger = get_logger("modules.ar.credit")


def _positive(amount) -> Decimal:
    amount = round_money(to_decimal(amount))
    if amount <= 0:
        raise InvalidAmountError("amount", amount)
    return amount


class CreditAccountService:
    """
    Credit balance operations for one session.

    Usage:
        credit = CreditAccountService(session)
        credit.increase(customer_id, Decimal("500.00"), actor_id=user)
        credit.has_sufficient_credit(customer_id, Decimal("100"))
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        self._session = session
        self._auto_commit = auto_commit

    def increase(self, customer_id: UUID, amount: Decimal, actor_id: UUID) -> CreditAccount:
        """Add ``amount`` to the customer's outstanding credit balance."""
        amount = _positive(amount)
        with unit_of_work(
            self._session, logger, "credit_increase",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Customer", entity_id=customer_id,
        ):
            customer = self.lock(customer_id)
            previous = customer.current_balance
            customer.current_balance = round_money(previous + amount)
            self._recompute(customer, actor_id)
            logger.info("credit_balance_increased", extra={
                "customer_id": str(customer_id),
                "amount": str(amount),
                "previous_balance": str(round_money(previous)),
                "current_balance": str(customer.current_balance),
            })
        return customer.credit_to_dto()

    def decrease(self, customer_id: UUID, amount: Decimal, actor_id: UUID) -> CreditAccount:
        """Remove ``amount`` from the balance; never below zero."""
        amount = _positive(amount)
        with unit_of_work(
            self._session, logger, "credit_decrease",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Customer", entity_id=customer_id,
        ):
            customer = self.lock(customer_id)
            previous = round_money(customer.current_balance)
            if amount > previous:
                logger.warning("credit_balance_underflow_rejected", extra={
                    "customer_id": str(customer_id),
                    "amount": str(amount),
                    "current_balance": str(previous),
                })
                raise CreditBalanceUnderflowError(
                    customer_id=str(customer_id),
                    amount=amount,
                    current_balance=previous,
                )
            customer.current_balance = previous - amount
            self._recompute(customer, actor_id)
            logger.info("credit_balance_decreased", extra={
                "customer_id": str(customer_id),
                "amount": str(amount),
                "previous_balance": str(previous),
                "current_balance": str(customer.current_balance),
            })
        return customer.credit_to_dto()

    def has_sufficient_credit(self, customer_id: UUID, amount: Decimal) -> bool:
        """True when the account is enabled, Active and covers ``amount``."""
        customer = load(self._session, CustomerModel, customer_id, CustomerNotFoundError)
        if not customer.credit_enabled:
            return False
        if customer.credit_status != CreditStatus.ACTIVE.value:
            return False
        return round_money(customer.available_credit) >= round_money(to_decimal(amount))

    def configure(
        self,
        customer_id: UUID,
        actor_id: UUID,
        credit_enabled: bool | None = None,
        credit_limit: Decimal | None = None,
        credit_status: CreditStatus | str | None = None,
        payment_terms_days: int | None = None,
    ) -> CreditAccount:
        """Change the account settings; ``None`` leaves a field unchanged."""
        with unit_of_work(
            self._session, logger, "credit_configure",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Customer", entity_id=customer_id,
        ):
            customer = self.lock(customer_id)
            if credit_enabled is not None:
                customer.credit_enabled = credit_enabled
            if credit_limit is not None:
                limit = round_money(to_decimal(credit_limit))
                if limit < 0:
                    raise ValidationError("credit_limit", f"cannot be negative, got {limit}")
                customer.credit_limit = limit
            if credit_status is not None:
                customer.credit_status = CreditStatus(credit_status).value
            if payment_terms_days is not None:
                if payment_terms_days < 0:
                    raise ValidationError("payment_terms_days", "cannot be negative")
                customer.payment_terms_days = payment_terms_days
            self._recompute(customer, actor_id)
            logger.info("credit_account_configured", extra={
                "customer_id": str(customer_id),
                "credit_enabled": customer.credit_enabled,
                "credit_limit": str(round_money(customer.credit_limit)),
                "credit_status": customer.credit_status,
            })
        return customer.credit_to_dto()

    def get_account(self, customer_id: UUID) -> CreditAccount:
        return load(self._session, CustomerModel, customer_id, CustomerNotFoundError).credit_to_dto()

    def lock(self, customer_id: UUID) -> CustomerModel:
        return load_for_update(self._session, CustomerModel, customer_id, CustomerNotFoundError)

    @staticmethod
    def _recompute(customer: CustomerModel, actor_id: UUID) -> None:
        customer.available_credit = round_money(customer.credit_limit - customer.current_balance)
        customer.updated_by_id = actor_id

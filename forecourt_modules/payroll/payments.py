"""
Payroll Payments (``forecourt_modules.payroll.payments``).

Responsibility
--------------
Pay salaries out of a bank account, one payroll at a time or as a batch,
and cancel a salary payment by refunding it.

Architecture position
---------------------
**Modules layer** -- service owning the transaction boundary.  Composes
``BankLedger`` (no commit) and ``LoanService`` with ``auto_commit=False``.

Invariants enforced
-------------------
* A payroll is marked Paid only by the transaction that withdrew its net
  salary, and carries that bank transaction's id.
* A batch checks the account can cover the sum of all pending net
  salaries before it touches anything.
* Each batch item runs in its own SAVEPOINT.  The total debited equals
  the sum of the payrolls reported as succeeded.
* Cancelling a payment refunds it with a compensating deposit and gives
  the payroll's loan installments back.

Failure modes
-------------
* ``InsufficientFundsError`` before any mutation (batch) or before the
  withdrawal (single payment).
* ``NoPendingPayrollsError`` when no requested payroll is pending.
* ``IllegalTransitionError`` for paying a non-pending payroll or
  cancelling a paid one without an admin override.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from forecourt_config.schema import EngineConfig
from forecourt_kernel.db.types import ZERO, round_money
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import (
    ForecourtError,
    NoPendingPayrollsError,
    PayrollNotFoundError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_modules._unit_of_work import load_for_update, unit_of_work
from forecourt_modules.cash.ledger import BankLedger
from forecourt_modules.cash.models import TransactionCategory
from forecourt_modules.cash.orm import BankAccountModel
from forecourt_modules.loans.service import LoanService
from forecourt_modules.payroll.models import (
    BatchPaymentFailure,
    BatchPaymentResult,
    BatchPaymentSuccess,
    Payroll,
    PayrollStatus,
)
from forecourt_modules.payroll.orm import PayrollModel
from forecourt_modules.payroll.service import append_remark
from forecourt_modules.payroll.workflows import ADMIN_OVERRIDE, PAYROLL_WORKFLOW, payroll_state

logger = get_logger("modules.payroll.payments")


class PayrollPaymentProcessor:
    """
    Salary payments from a bank account.

    Usage:
        processor = PayrollPaymentProcessor(session, clock=clock)
        result = processor.process_batch_payment(account_id, payroll_ids, actor_id=user)
        if not result.all_succeeded:
            ...
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        config = config or EngineConfig.with_defaults()
        self._ledger = BankLedger(session, self._clock)
        self._loans = LoanService(
            session, clock=self._clock, policy=config.loans, auto_commit=False,
        )

    def process_payment(
        self,
        payroll_id: UUID,
        bank_account_id: UUID,
        actor_id: UUID,
        payment_date: date | None = None,
    ) -> Payroll:
        """Withdraw one payroll's net salary and mark it Paid."""
        with unit_of_work(
            self._session, logger, "process_payroll_payment",
            actor_id=actor_id, entity_type="Payroll", entity_id=payroll_id,
        ):
            payroll = load_for_update(self._session, PayrollModel, payroll_id, PayrollNotFoundError)
            PAYROLL_WORKFLOW.resolve(
                "Payroll", str(payroll_id), payroll_state(payroll.payment_status), "pay",
            )
            account = self._ledger.lock_account(bank_account_id)
            self._pay(payroll, account, actor_id, payment_date or self._clock.today())
        return payroll.to_dto()

    def process_batch_payment(
        self,
        bank_account_id: UUID,
        payroll_ids: Sequence[UUID],
        actor_id: UUID,
        payment_date: date | None = None,
    ) -> BatchPaymentResult:
        """
        Pay every pending payroll in ``payroll_ids`` from one account.

        Requested ids that do not exist or are not pending are reported in
        ``skipped``.  A payroll that fails on its own (for example a net
        salary of zero) is reported in ``failed`` and leaves the account
        untouched; the rest of the batch still goes through.

        Raises:
            ValidationError: Empty ``payroll_ids``.
            NoPendingPayrollsError: Nothing to pay.
            InsufficientFundsError: The account cannot cover the total.
        """
        if not payroll_ids:
            raise ValidationError("payroll_ids", "at least one payroll is required")
        requested = list(dict.fromkeys(payroll_ids))
        on_date = payment_date or self._clock.today()

        with unit_of_work(
            self._session, logger, "process_batch_payment",
            actor_id=actor_id, entity_type="BankAccount", entity_id=bank_account_id,
        ):
            account = self._ledger.lock_account(bank_account_id)
            rows = self._session.execute(
                select(PayrollModel)
                .where(PayrollModel.id.in_(requested))
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars().all()
            by_id = {p.id: p for p in rows}
            pending = [
                by_id[i] for i in requested
                if i in by_id and by_id[i].payment_status == PayrollStatus.PENDING.value
            ]
            skipped = tuple(i for i in requested if i not in {p.id for p in pending})
            if not pending:
                raise NoPendingPayrollsError(len(requested))

            total_requested = round_money(sum((p.net_salary for p in pending), ZERO))
            self._ledger.ensure_funds(account, total_requested)

            succeeded: list[BatchPaymentSuccess] = []
            failed: list[BatchPaymentFailure] = []
            for payroll in pending:
                payroll_id = payroll.id
                try:
                    with self._session.begin_nested():
                        txn_id = self._pay(payroll, account, actor_id, on_date)
                except ForecourtError as exc:
                    logger.warning("payroll_payment_failed", extra={
                        "payroll_id": str(payroll_id),
                        "error_code": exc.code,
                        "error": str(exc),
                    })
                    failed.append(BatchPaymentFailure(payroll_id, exc.code, str(exc)))
                    continue
                succeeded.append(
                    BatchPaymentSuccess(payroll_id, txn_id, round_money(payroll.net_salary))
                )

            total_paid = round_money(sum((s.amount for s in succeeded), ZERO))
            closing_balance = round_money(account.current_balance)
            logger.info("batch_payment_completed", extra={
                "bank_account_id": str(bank_account_id),
                "requested": len(requested),
                "succeeded": len(succeeded),
                "failed": len(failed),
                "skipped": len(skipped),
                "total_requested": str(total_requested),
                "total_paid": str(total_paid),
                "closing_balance": str(closing_balance),
            })

        return BatchPaymentResult(
            bank_account_id=bank_account_id,
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            skipped=skipped,
            total_requested=total_requested,
            total_paid=total_paid,
            closing_balance=closing_balance,
        )

    def cancel_payment(
        self,
        payroll_id: UUID,
        actor_id: UUID,
        admin_override: bool = False,
        reason: str | None = None,
    ) -> Payroll:
        """
        Cancel a paid payroll.

        The salary withdrawal is refunded by a compensating deposit and the
        payroll's loan installments return to pending.  Requires
        ``admin_override``.
        """
        with unit_of_work(
            self._session, logger, "cancel_payroll_payment",
            actor_id=actor_id, entity_type="Payroll", entity_id=payroll_id,
        ):
            payroll = load_for_update(self._session, PayrollModel, payroll_id, PayrollNotFoundError)
            guards = frozenset({ADMIN_OVERRIDE.name}) if admin_override else frozenset()
            PAYROLL_WORKFLOW.resolve(
                "Payroll", str(payroll_id), payroll_state(payroll.payment_status),
                "cancel_payment", satisfied_guards=guards,
            )
            if payroll.bank_transaction_id is None:
                raise ValidationError(
                    "bank_transaction_id", f"payroll {payroll_id} has no payment to refund",
                )

            note = f"Payment cancelled by {actor_id} on {self._clock.now_utc().isoformat()}"
            if reason:
                note = f"{note}: {reason}"
            refund = self._ledger.reverse(
                payroll.bank_transaction_id,
                actor_id=actor_id,
                reason=reason or f"payroll {payroll.payroll_number} payment cancelled",
            )
            restored = self._loans.restore_payroll_deductions(payroll.id, actor_id)
            payroll.payment_status = PayrollStatus.CANCELLED.value
            payroll.remarks = append_remark(payroll.remarks, note)
            payroll.updated_by_id = actor_id

            logger.info("payroll_payment_cancelled", extra={
                "payroll_id": str(payroll_id),
                "refund_transaction_id": str(refund.id),
                "amount": str(refund.amount),
                "restored_installments": restored,
            })
        return payroll.to_dto()

    def _pay(
        self,
        payroll: PayrollModel,
        account: BankAccountModel,
        actor_id: UUID,
        on_date: date,
    ) -> UUID:
        net: Decimal = round_money(payroll.net_salary)
        txn = self._ledger.withdraw(
            account, net,
            actor_id=actor_id,
            description=(
                f"Salary {payroll.pay_month:02d}/{payroll.pay_year} "
                f"({payroll.payroll_number})"
            ),
            category=TransactionCategory.SALARY.value,
            transaction_date=on_date,
            source_type="payroll",
            source_id=payroll.id,
        )
        payroll.payment_status = PayrollStatus.PAID.value
        payroll.payment_date = on_date
        payroll.bank_transaction_id = txn.id
        payroll.updated_by_id = actor_id
        self._session.flush()

        logger.info("payroll_paid", extra={
            "payroll_id": str(payroll.id),
            "bank_account_id": str(account.id),
            "transaction_id": str(txn.id),
            "amount": str(net),
        })
        return txn.id

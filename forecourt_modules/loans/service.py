"""
Employee Loan Service (``forecourt_modules.loans.service``).

Responsibility
--------------
Apply for, approve, reject, revise and cancel employee loans; persist
the amortization schedule; and consume or restore installments on behalf of
payroll.

Architecture position
---------------------
**Modules layer** -- service.  Schedules come from
``forecourt_engines.amortization``.  ``PayrollService`` and
``PayrollPaymentProcessor`` compose this service with
``auto_commit=False`` and call ``apply_payroll_deductions`` /
``restore_payroll_deductions`` inside their own transaction.

Invariants enforced
-------------------
* Installment amounts sum exactly to ``total_repayable``.
* ``remaining_amount`` only decreases when an installment is paid and
  only increases when a payment is restored.  Re-pricing a pending loan
  resets it to the new total.
* A loan is completed when ``remaining_amount`` reaches zero, or by hand
  through ``update_loan``, which zeroes it.
* An employee holds at most ``LoanPolicy.max_open_loans`` pending or
  active loans.

Failure modes
-------------
* ``EmployeeNotFoundError``, ``LoanNotFoundError``,
  ``InstallmentNotFoundError``.
* ``OpenLoanLimitError`` when the employee already has an open loan.
* ``IllegalTransitionError`` for moves ``LOAN_WORKFLOW`` does not allow,
  and for paying an installment twice.
* ``ValidationError`` / ``InvalidAmountError`` for bad terms, and for
  changing the terms of an active loan.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from forecourt_config.schema import LoanPolicy
from forecourt_engines.amortization import LoanSchedule, compute_loan_schedule
from forecourt_engines.payroll_calculator import (
    InstallmentSnapshot,
    LoanDeduction,
    LoanSnapshot,
)
from forecourt_kernel.db.types import round_money, to_decimal
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import (
    EmployeeNotFoundError,
    IllegalTransitionError,
    InstallmentNotFoundError,
    InvalidAmountError,
    LoanNotFoundError,
    OpenLoanLimitError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_kernel.utils.numbering import LOAN_PREFIX, document_number
from forecourt_modules._unit_of_work import load, load_for_update, unit_of_work
from forecourt_modules.loans.models import InstallmentStatus, Loan, LoanStatus
from forecourt_modules.loans.orm import LoanInstallmentModel, LoanModel
from forecourt_modules.loans.workflows import LOAN_WORKFLOW
from forecourt_modules.payroll.orm import EmployeeModel

logger = get_logger("modules.loans.service")

_OPEN_STATUSES = (LoanStatus.PENDING.value, LoanStatus.ACTIVE.value)


class LoanService:
    """
    Employee loan lifecycle.

    Usage:
        loans = LoanService(session, clock=clock, policy=config.loans)
        loan = loans.apply_for_loan(
            employee_id, Decimal("12000"), 12, date(2024, 1, 15), actor_id=user,
        )
        loans.approve_loan(loan.id, actor_id=manager)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LoanPolicy | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or LoanPolicy.with_defaults()
        self._auto_commit = auto_commit

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def apply_for_loan(
        self,
        employee_id: UUID,
        principal: Decimal,
        duration_months: int,
        start_date: date,
        actor_id: UUID,
        purpose: str | None = None,
        auto_approve: bool = False,
    ) -> Loan:
        """
        Create a loan with its full repayment schedule.

        The loan starts pending, or active when ``auto_approve`` is set.
        """
        principal = self._check_terms(principal, duration_months)

        with unit_of_work(
            self._session, logger, "apply_for_loan",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan",
        ):
            employee = load_for_update(
                self._session, EmployeeModel, employee_id, EmployeeNotFoundError,
            )
            if not employee.is_active:
                raise ValidationError("employee_id", f"employee {employee_id} is inactive")

            open_loans = self._session.scalar(
                select(func.count(LoanModel.id)).where(
                    LoanModel.employee_id == employee_id,
                    LoanModel.status.in_(_OPEN_STATUSES),
                )
            )
            if open_loans >= self._policy.max_open_loans:
                logger.warning("loan_application_rejected_open_loan", extra={
                    "employee_id": str(employee_id),
                    "open_loans": open_loans,
                })
                raise OpenLoanLimitError(
                    str(employee_id), open_loans, self._policy.max_open_loans,
                )

            loan = LoanModel(
                loan_number=document_number(LOAN_PREFIX, self._clock.today()),
                employee_id=employee_id,
                purpose=purpose,
                status=LoanStatus.PENDING.value,
                created_by_id=actor_id,
            )
            schedule = self._apply_schedule(loan, principal, duration_months, start_date, actor_id)
            self._session.add(loan)
            self._session.flush()

            logger.info("loan_created", extra={
                "loan_id": str(loan.id),
                "employee_id": str(employee_id),
                "principal": str(schedule.principal),
                "total_repayable": str(schedule.total_repayable),
                "duration_months": duration_months,
            })
            if auto_approve:
                self._approve(loan, actor_id)
        return loan.to_dto()

    def approve_loan(self, loan_id: UUID, actor_id: UUID) -> Loan:
        with unit_of_work(
            self._session, logger, "approve_loan",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan", entity_id=loan_id,
        ):
            loan = self._lock(loan_id)
            self._approve(loan, actor_id)
        return loan.to_dto()

    def reject_loan(self, loan_id: UUID, actor_id: UUID, reason: str) -> Loan:
        if not reason or not reason.strip():
            raise ValidationError("reason", "a rejection reason is required")
        with unit_of_work(
            self._session, logger, "reject_loan",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan", entity_id=loan_id,
        ):
            loan = self._lock(loan_id)
            self._transition(loan, "reject", actor_id)
            loan.rejection_reason = reason.strip()
        return loan.to_dto()

    def cancel_loan(self, loan_id: UUID, actor_id: UUID, reason: str | None = None) -> Loan:
        with unit_of_work(
            self._session, logger, "cancel_loan",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan", entity_id=loan_id,
        ):
            loan = self._lock(loan_id)
            self._transition(loan, "cancel", actor_id, reason=reason)
        return loan.to_dto()

    def update_loan(
        self,
        loan_id: UUID,
        actor_id: UUID,
        principal: Decimal | None = None,
        duration_months: int | None = None,
        start_date: date | None = None,
        purpose: str | None = None,
        complete: bool = False,
    ) -> Loan:
        """
        Revise a pending loan or close an active one by hand.

        A pending loan may change its principal, duration, start date and
        purpose; any change to the terms rebuilds the whole schedule and
        resets ``remaining_amount`` to the new total.  An active loan may
        only change its purpose, or be completed with ``complete=True``,
        which zeroes ``remaining_amount`` and ends the loan today.

        Raises:
            IllegalTransitionError: The loan is completed, rejected or
                cancelled, or ``complete`` was asked of a pending loan.
            ValidationError: New terms for an active loan, or bad terms.
        """
        reprice = any(v is not None for v in (principal, duration_months, start_date))
        with unit_of_work(
            self._session, logger, "update_loan",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan", entity_id=loan_id,
        ):
            loan = self._lock(loan_id)
            if loan.status not in _OPEN_STATUSES:
                raise IllegalTransitionError("Loan", str(loan_id), loan.status, "update")
            if loan.status == LoanStatus.ACTIVE.value and reprice:
                raise ValidationError(
                    "loan_id", f"terms of active loan {loan.loan_number} cannot change",
                )

            if purpose is not None:
                loan.purpose = purpose
            if reprice:
                new_principal = self._check_terms(
                    loan.principal if principal is None else principal,
                    loan.duration_months if duration_months is None else duration_months,
                )
                schedule = self._apply_schedule(
                    loan,
                    new_principal,
                    loan.duration_months if duration_months is None else duration_months,
                    loan.start_date if start_date is None else start_date,
                    actor_id,
                )
                logger.info("loan_repriced", extra={
                    "loan_id": str(loan.id),
                    "principal": str(schedule.principal),
                    "total_repayable": str(schedule.total_repayable),
                    "duration_months": schedule.months,
                })
            if complete:
                self._transition(loan, "complete", actor_id, reason="manual completion")
                loan.remaining_amount = Decimal("0")
                loan.end_date = self._clock.today()
            loan.updated_by_id = actor_id
            self._session.flush()
        return loan.to_dto()

    def record_manual_payment(
        self,
        loan_id: UUID,
        installment_number: int,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Loan:
        """Pay one pending installment outside payroll (e.g. cash repayment)."""
        with unit_of_work(
            self._session, logger, "record_loan_payment",
            auto_commit=self._auto_commit, actor_id=actor_id,
            entity_type="Loan", entity_id=loan_id,
        ):
            loan = self._lock(loan_id)
            if loan.status != LoanStatus.ACTIVE.value:
                raise IllegalTransitionError("Loan", str(loan_id), loan.status, "record_payment")
            installment = self._pending_installment(loan, installment_number)
            installment.notes = notes
            self._pay(loan, installment, actor_id, self._clock.today(), payroll_id=None)
        return loan.to_dto()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: UUID) -> Loan:
        return load(self._session, LoanModel, loan_id, LoanNotFoundError).to_dto()

    def active_loans_for(self, employee_id: UUID) -> tuple[LoanSnapshot, ...]:
        """Active loans of the employee in the shape the payroll calculator reads."""
        loans = self._session.scalars(
            select(LoanModel)
            .where(
                LoanModel.employee_id == employee_id,
                LoanModel.status == LoanStatus.ACTIVE.value,
            )
            .order_by(LoanModel.start_date, LoanModel.loan_number)
        ).all()
        return tuple(
            LoanSnapshot(
                loan_id=loan.id,
                status=loan.status,
                installments=tuple(
                    InstallmentSnapshot(
                        installment_number=i.installment_number,
                        due_date=i.due_date,
                        amount=round_money(i.amount),
                        status=i.status,
                    )
                    for i in loan.installments
                ),
            )
            for loan in loans
        )

    # -------------------------------------------------------------------------
    # Payroll hooks (run inside the caller's transaction)
    # -------------------------------------------------------------------------

    def apply_payroll_deductions(
        self,
        deductions: Sequence[LoanDeduction],
        payroll_id: UUID,
        paid_on: date,
        actor_id: UUID,
    ) -> None:
        """Mark each deducted installment paid by ``payroll_id``."""
        for deduction in deductions:
            loan = self._lock(deduction.loan_id)
            if loan.status != LoanStatus.ACTIVE.value:
                raise IllegalTransitionError(
                    "Loan", str(loan.id), loan.status, "deduct_installment",
                )
            installment = self._pending_installment(loan, deduction.installment_number)
            self._pay(loan, installment, actor_id, paid_on, payroll_id=payroll_id)
        self._session.flush()

    def restore_payroll_deductions(self, payroll_id: UUID, actor_id: UUID) -> int:
        """
        Undo ``apply_payroll_deductions`` for a cancelled payroll.

        Installments return to pending, their amounts go back onto the
        loan, and a loan completed by this payroll is re-opened.

        Returns:
            Number of installments restored.
        """
        installments = self._session.scalars(
            select(LoanInstallmentModel).where(LoanInstallmentModel.payroll_id == payroll_id)
        ).all()
        for loan_id in sorted({i.loan_id for i in installments}, key=str):
            loan = self._lock(loan_id)
            restored = [i for i in loan.installments if i.payroll_id == payroll_id]
            for installment in restored:
                installment.status = InstallmentStatus.PENDING.value
                installment.payroll_id = None
                installment.paid_date = None
                installment.updated_by_id = actor_id
                loan.remaining_amount = round_money(loan.remaining_amount + installment.amount)
            if loan.status == LoanStatus.COMPLETED.value:
                self._transition(loan, "reopen", actor_id)
                loan.end_date = loan.installments[-1].due_date
            loan.updated_by_id = actor_id
            logger.info("loan_installments_restored", extra={
                "loan_id": str(loan.id),
                "payroll_id": str(payroll_id),
                "installments": [i.installment_number for i in restored],
                "remaining_amount": str(loan.remaining_amount),
            })
        self._session.flush()
        return len(installments)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_terms(self, principal, duration_months: int) -> Decimal:
        principal = round_money(to_decimal(principal))
        if principal <= 0:
            raise InvalidAmountError("principal", principal)
        if principal < self._policy.min_principal:
            raise ValidationError(
                "principal", f"must be at least {self._policy.min_principal}, got {principal}",
            )
        if duration_months > self._policy.max_duration_months:
            raise ValidationError(
                "duration_months",
                f"cannot exceed {self._policy.max_duration_months}, got {duration_months}",
            )
        return principal

    def _apply_schedule(
        self,
        loan: LoanModel,
        principal: Decimal,
        duration_months: int,
        start_date: date,
        actor_id: UUID,
    ) -> LoanSchedule:
        """Write a fresh schedule onto ``loan``, replacing any existing installments."""
        schedule = compute_loan_schedule(
            principal, duration_months, start_date, self._policy.annual_interest_rate,
        )
        if loan.installments:
            # old rows must be gone before new ones reuse their numbers
            loan.installments.clear()
            self._session.flush()

        loan.principal = schedule.principal
        loan.interest_rate = schedule.annual_rate
        loan.interest_amount = schedule.interest_amount
        loan.total_repayable = schedule.total_repayable
        loan.installment_amount = schedule.monthly_installment
        loan.duration_months = schedule.months
        loan.start_date = schedule.start_date
        loan.end_date = schedule.end_date
        loan.remaining_amount = schedule.total_repayable
        loan.installments = [
            LoanInstallmentModel(
                installment_number=row.installment_number,
                due_date=row.due_date,
                amount=row.amount,
                remaining_balance=row.remaining_balance,
                status=InstallmentStatus.PENDING.value,
                created_by_id=actor_id,
            )
            for row in schedule.installments
        ]
        return schedule

    def _lock(self, loan_id: UUID) -> LoanModel:
        return load_for_update(self._session, LoanModel, loan_id, LoanNotFoundError)

    def _approve(self, loan: LoanModel, actor_id: UUID) -> None:
        self._transition(loan, "approve", actor_id)
        loan.approved_by_id = actor_id
        loan.approval_date = self._clock.today()

    def _transition(
        self,
        loan: LoanModel,
        action: str,
        actor_id: UUID,
        reason: str | None = None,
    ) -> None:
        transition = LOAN_WORKFLOW.resolve("Loan", str(loan.id), loan.status, action)
        loan.status = transition.to_state
        loan.updated_by_id = actor_id
        logger.info("loan_status_changed", extra={
            "loan_id": str(loan.id),
            "action": action,
            "from_state": transition.from_state,
            "to_state": transition.to_state,
            "reason": reason,
        })

    @staticmethod
    def _pending_installment(loan: LoanModel, number: int) -> LoanInstallmentModel:
        installment = loan.installment(number)
        if installment is None:
            raise InstallmentNotFoundError(f"{loan.id}#{number}")
        if installment.status != InstallmentStatus.PENDING.value:
            raise IllegalTransitionError(
                "LoanInstallment", f"{loan.id}#{number}", installment.status, "pay",
            )
        return installment

    def _pay(
        self,
        loan: LoanModel,
        installment: LoanInstallmentModel,
        actor_id: UUID,
        paid_on: date,
        payroll_id: UUID | None,
    ) -> None:
        installment.status = InstallmentStatus.PAID.value
        installment.paid_date = paid_on
        installment.payroll_id = payroll_id
        installment.updated_by_id = actor_id

        remaining = round_money(loan.remaining_amount - installment.amount)
        loan.remaining_amount = max(remaining, Decimal("0"))
        loan.updated_by_id = actor_id
        logger.info("loan_installment_paid", extra={
            "loan_id": str(loan.id),
            "installment_number": installment.installment_number,
            "amount": str(round_money(installment.amount)),
            "payroll_id": str(payroll_id) if payroll_id else None,
            "remaining_amount": str(loan.remaining_amount),
        })
        if remaining <= 0:
            self._transition(loan, "complete", actor_id)
            loan.end_date = paid_on


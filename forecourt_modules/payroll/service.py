"""
Payroll Module Service (``forecourt_modules.payroll.service``).

Responsibility
--------------
Generate, revise and cancel monthly payroll records.  Earnings, statutory
contributions, loan deductions and net salary come from
``forecourt_engines.payroll_calculator``; this service loads the inputs,
persists the result and consumes the loan installments it deducted, all
in one transaction.

Architecture position
---------------------
**Modules layer** -- service owning the transaction boundary.  Composes
``LoanService`` with ``auto_commit=False``.  Salary payment lives in
``forecourt_modules.payroll.payments``.

Invariants enforced
-------------------
* One payroll per employee per month.
* ``net_salary == total_earnings - total_deductions``.
* Each active loan contributes at most one installment per payroll, and
  that installment is marked paid by the same transaction that stores the
  payroll.
* A cancelled payroll gives its installments back to the loans.
* A paid payroll changes only under an explicit admin override.

Failure modes
-------------
* ``ValidationError`` for a month outside 1..12, an inactive employee,
  unknown or restricted revision fields.
* ``EmployeeNotFoundError``, ``PayrollNotFoundError``.
* ``DuplicatePayrollError`` for a second payroll in the same period.
* ``IllegalTransitionError`` for moves ``PAYROLL_WORKFLOW`` forbids.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from forecourt_config.schema import EngineConfig
from forecourt_engines.payroll_calculator import (
    AdditionalDeductions,
    AdditionalEarnings,
    Allowance,
    LoanDeduction,
    PayrollCalculation,
    PayrollCalculator,
    SalaryStructure,
)
from forecourt_kernel.db.types import round_money
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import (
    DuplicatePayrollError,
    EmployeeNotFoundError,
    ForecourtError,
    PayrollNotFoundError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_kernel.utils.numbering import PAYROLL_PREFIX, document_number
from forecourt_modules._unit_of_work import load, load_for_update, unit_of_work
from forecourt_modules.loans.service import LoanService
from forecourt_modules.payroll.models import (
    Payroll,
    PayrollGenerationBatchResult,
    PayrollGenerationFailure,
    PayrollStatus,
)
from forecourt_modules.payroll.orm import (
    EmployeeModel,
    PayrollLoanDeductionModel,
    PayrollModel,
)
from forecourt_modules.payroll.workflows import ADMIN_OVERRIDE, PAYROLL_WORKFLOW, payroll_state

logger = get_logger("modules.payroll.service")

# Revisable without an override
_PERIOD_FIELDS = frozenset({
    "overtime", "bonuses", "other_earnings", "advances", "other_deductions", "remarks",
})
# Revisable only with an admin override
_STRUCTURE_FIELDS = frozenset({"basic_salary", "allowances"})


def append_remark(existing: str | None, note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def write_calculation(payroll: PayrollModel, calc: PayrollCalculation) -> None:
    """Copy every amount of ``calc`` onto the payroll row."""
    earnings, deductions, contributions = calc.earnings, calc.deductions, calc.contributions
    payroll.basic_salary = earnings.basic_salary
    payroll.allowances = [
        {"allowance_type": a.allowance_type, "amount": str(a.amount)}
        for a in earnings.allowances
    ]
    payroll.allowances_total = earnings.allowances_total
    payroll.overtime = earnings.overtime
    payroll.bonuses = earnings.bonuses
    payroll.other_earnings = earnings.other
    payroll.total_earnings = earnings.total
    payroll.employee_contribution = deductions.employee_contribution
    payroll.loan_repayment = deductions.loan_repayment
    payroll.advances = deductions.advances
    payroll.other_deductions = deductions.other
    payroll.total_deductions = deductions.total
    payroll.employer_contribution = contributions.employer_contribution
    payroll.employer_levy = contributions.employer_levy
    payroll.total_contributions = contributions.total
    payroll.net_salary = calc.net_salary
    payroll.cost_to_company = calc.cost_to_company


class PayrollService:
    """
    Monthly payroll generation.

    Transaction boundary: each public method commits on success and rolls
    back on failure.  Batch generation runs each employee in a SAVEPOINT.

    Usage:
        service = PayrollService(session, clock=clock, config=config)
        payroll = service.generate_payroll(employee_id, 1, 2024, actor_id=user)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig.with_defaults()
        self._calculator = PayrollCalculator(self._config.statutory)
        self._loans = LoanService(
            session, clock=self._clock, policy=self._config.loans, auto_commit=False,
        )

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_payroll(
        self,
        employee_id: UUID,
        month: int,
        year: int,
        actor_id: UUID,
        extra_earnings: AdditionalEarnings | None = None,
        extra_deductions: AdditionalDeductions | None = None,
        remarks: str | None = None,
    ) -> Payroll:
        """
        Calculate and store the employee's payroll for ``month``/``year``.

        The next pending installment of every active loan is deducted and
        marked paid in the same transaction.
        """
        self._check_period(month, year)
        with unit_of_work(
            self._session, logger, "generate_payroll",
            actor_id=actor_id, entity_type="Payroll", entity_id=employee_id,
        ):
            payroll = self._generate(
                employee_id, month, year, actor_id,
                extra_earnings, extra_deductions, remarks,
            )
        return payroll.to_dto()

    def generate_batch_payroll(
        self,
        employee_ids: Sequence[UUID],
        month: int,
        year: int,
        actor_id: UUID,
    ) -> PayrollGenerationBatchResult:
        """
        Generate payroll for several employees.

        A failing employee is recorded in ``failed`` and rolled back to its
        savepoint; the others are unaffected.
        """
        self._check_period(month, year)
        succeeded: list[PayrollModel] = []
        failed: list[PayrollGenerationFailure] = []

        with unit_of_work(
            self._session, logger, "generate_batch_payroll", actor_id=actor_id,
        ):
            for employee_id in dict.fromkeys(employee_ids):
                try:
                    with self._session.begin_nested():
                        payroll = self._generate(
                            employee_id, month, year, actor_id, None, None, None,
                        )
                except ForecourtError as exc:
                    logger.warning("payroll_generation_failed", extra={
                        "employee_id": str(employee_id),
                        "error_code": exc.code,
                        "error": str(exc),
                    })
                    failed.append(PayrollGenerationFailure(employee_id, exc.code, str(exc)))
                    continue
                succeeded.append(payroll)

            logger.info("payroll_batch_generated", extra={
                "pay_month": month,
                "pay_year": year,
                "requested": len(employee_ids),
                "succeeded": len(succeeded),
                "failed": len(failed),
            })

        return PayrollGenerationBatchResult(
            succeeded=tuple(p.to_dto() for p in succeeded),
            failed=tuple(failed),
        )

    # -------------------------------------------------------------------------
    # Revision and cancellation
    # -------------------------------------------------------------------------

    def update_payroll(
        self,
        payroll_id: UUID,
        actor_id: UUID,
        admin_override: bool = False,
        **changes: Any,
    ) -> Payroll:
        """
        Revise a payroll and recompute its totals.

        Without ``admin_override`` only the period amounts (overtime,
        bonuses, other earnings, advances, other deductions) and remarks
        may change, and only while the payroll is pending.  With it, a
        paid payroll may be revised and basic salary / allowances may
        change too, in which case statutory amounts are recomputed.
        Loan deductions are never re-selected.
        """
        unknown = set(changes) - _PERIOD_FIELDS - _STRUCTURE_FIELDS
        if unknown:
            raise ValidationError(
                sorted(unknown)[0], f"is not a revisable payroll field ({sorted(unknown)})",
            )
        restricted = set(changes) & _STRUCTURE_FIELDS
        if restricted and not admin_override:
            raise ValidationError(sorted(restricted)[0], "can only be changed with an admin override")

        with unit_of_work(
            self._session, logger, "update_payroll",
            actor_id=actor_id, entity_type="Payroll", entity_id=payroll_id,
        ):
            payroll = self._lock(payroll_id)
            guards = frozenset({ADMIN_OVERRIDE.name}) if admin_override else frozenset()
            PAYROLL_WORKFLOW.resolve(
                "Payroll", str(payroll_id), payroll_state(payroll.payment_status),
                "revise", satisfied_guards=guards,
            )

            if "allowances" in changes:
                allowances = tuple(self._as_allowance(a) for a in changes["allowances"])
            else:
                allowances = tuple(
                    Allowance(a["allowance_type"], Decimal(a["amount"]))
                    for a in payroll.allowances or ()
                )
            earnings = self._calculator.build_earnings(
                SalaryStructure(
                    basic_salary=changes.get("basic_salary", payroll.basic_salary),
                    allowances=allowances,
                    employee_id=payroll.employee_id,
                ),
                AdditionalEarnings(
                    overtime=changes.get("overtime", payroll.overtime),
                    bonuses=changes.get("bonuses", payroll.bonuses),
                    other=changes.get("other_earnings", payroll.other_earnings),
                ),
            )
            contributions = None
            if not restricted:
                contributions = (
                    round_money(payroll.employee_contribution),
                    round_money(payroll.employer_contribution),
                    round_money(payroll.employer_levy),
                )
            calc = self._calculator.calculate_from_earnings(
                earnings,
                tuple(
                    LoanDeduction(d.loan_id, d.installment_number, round_money(d.amount))
                    for d in payroll.loan_deductions
                ),
                AdditionalDeductions(
                    advances=changes.get("advances", payroll.advances),
                    other=changes.get("other_deductions", payroll.other_deductions),
                ),
                contributions_override=contributions,
            )
            previous_net = round_money(payroll.net_salary)
            write_calculation(payroll, calc)
            if "remarks" in changes:
                payroll.remarks = changes["remarks"]
            payroll.updated_by_id = actor_id

            if payroll.payment_status == PayrollStatus.PAID.value:
                logger.warning("paid_payroll_revised", extra={
                    "payroll_id": str(payroll_id),
                    "previous_net_salary": str(previous_net),
                    "net_salary": str(calc.net_salary),
                })
            logger.info("payroll_updated", extra={
                "payroll_id": str(payroll_id),
                "fields": sorted(changes),
                "admin_override": admin_override,
                "net_salary": str(calc.net_salary),
            })
        return payroll.to_dto()

    def cancel_payroll(
        self,
        payroll_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Payroll:
        """Cancel a pending payroll and give its installments back to the loans."""
        with unit_of_work(
            self._session, logger, "cancel_payroll",
            actor_id=actor_id, entity_type="Payroll", entity_id=payroll_id,
        ):
            payroll = self._lock(payroll_id)
            PAYROLL_WORKFLOW.resolve(
                "Payroll", str(payroll_id), payroll_state(payroll.payment_status), "cancel",
            )
            restored = self._loans.restore_payroll_deductions(payroll.id, actor_id)
            payroll.payment_status = PayrollStatus.CANCELLED.value
            note = f"Cancelled by {actor_id} on {self._clock.now_utc().isoformat()}"
            payroll.remarks = append_remark(payroll.remarks, f"{note}: {reason}" if reason else note)
            payroll.updated_by_id = actor_id
            logger.info("payroll_cancelled", extra={
                "payroll_id": str(payroll_id),
                "restored_installments": restored,
            })
        return payroll.to_dto()

    def get_payroll(self, payroll_id: UUID) -> Payroll:
        return load(self._session, PayrollModel, payroll_id, PayrollNotFoundError).to_dto()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_period(month: int, year: int) -> None:
        if not 1 <= month <= 12:
            raise ValidationError("month", f"must be between 1 and 12, got {month}")
        if year < 1:
            raise ValidationError("year", f"must be positive, got {year}")

    @staticmethod
    def _as_allowance(value: Allowance | Iterable) -> Allowance:
        if isinstance(value, Allowance):
            return value
        allowance_type, amount = value
        return Allowance(allowance_type, amount)

    def _lock(self, payroll_id: UUID) -> PayrollModel:
        return load_for_update(self._session, PayrollModel, payroll_id, PayrollNotFoundError)

    def _generate(
        self,
        employee_id: UUID,
        month: int,
        year: int,
        actor_id: UUID,
        extra_earnings: AdditionalEarnings | None,
        extra_deductions: AdditionalDeductions | None,
        remarks: str | None,
    ) -> PayrollModel:
        employee = load_for_update(
            self._session, EmployeeModel, employee_id, EmployeeNotFoundError,
        )
        if not employee.is_active:
            raise ValidationError("employee_id", f"employee {employee_id} is inactive")

        existing = self._session.scalar(
            select(PayrollModel.id).where(
                PayrollModel.employee_id == employee_id,
                PayrollModel.pay_month == month,
                PayrollModel.pay_year == year,
            )
        )
        if existing is not None:
            raise DuplicatePayrollError(str(employee_id), month, year)

        calc = self._calculator.calculate(
            SalaryStructure(
                basic_salary=employee.basic_salary,
                allowances=tuple(
                    Allowance(a.allowance_type, a.amount) for a in employee.allowances
                ),
                employee_id=employee.id,
            ),
            active_loans=self._loans.active_loans_for(employee_id),
            extra_earnings=extra_earnings,
            extra_deductions=extra_deductions,
        )

        today = self._clock.today()
        payroll = PayrollModel(
            payroll_number=document_number(PAYROLL_PREFIX, today),
            employee_id=employee_id,
            pay_month=month,
            pay_year=year,
            payment_status=PayrollStatus.PENDING.value,
            remarks=remarks,
            created_by_id=actor_id,
        )
        write_calculation(payroll, calc)
        payroll.loan_deductions = [
            PayrollLoanDeductionModel(
                loan_id=d.loan_id,
                installment_number=d.installment_number,
                amount=d.amount,
                created_by_id=actor_id,
            )
            for d in calc.deductions.loan_deductions
        ]
        self._session.add(payroll)
        self._session.flush()

        self._loans.apply_payroll_deductions(
            calc.deductions.loan_deductions, payroll.id, today, actor_id,
        )

        logger.info("payroll_generated", extra={
            "payroll_id": str(payroll.id),
            "employee_id": str(employee_id),
            "pay_month": month,
            "pay_year": year,
            "gross_salary": str(calc.earnings.total),
            "net_salary": str(calc.net_salary),
            "loan_repayment": str(calc.deductions.loan_repayment),
        })
        return payroll

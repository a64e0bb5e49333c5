"""
Tests for salary payments (PayrollPaymentProcessor).

Validates:
- A payment withdraws the net salary and marks the payroll Paid
- A batch that the account cannot cover is rejected before any mutation
- Per-item failures leave the rest of the batch intact
- Total debited equals the sum of succeeded payrolls
- Cancelling a payment refunds it and restores loan installments
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_engines.payroll_calculator import AdditionalDeductions
from forecourt_kernel.exceptions import (
    IllegalTransitionError,
    InsufficientFundsError,
    NoPendingPayrollsError,
    ValidationError,
)
from forecourt_modules.cash.models import TransactionCategory
from forecourt_modules.cash.orm import BankTransactionModel
from forecourt_modules.loans.models import InstallmentStatus
from forecourt_modules.payroll.models import PayrollStatus
from tests.conftest import TEST_ACTOR_ID


@pytest.fixture
def make_payroll(payroll_service, make_employee):
    """Generate a January 2024 payroll with the requested net salary."""

    def _make(net_salary=Decimal("46000")):
        # 50000 basic nets 46000 after the 8% employee share.
        employee = make_employee(basic_salary=Decimal("50000"))
        return payroll_service.generate_payroll(
            employee.id, 1, 2024, actor_id=TEST_ACTOR_ID,
            extra_deductions=AdditionalDeductions(advances=Decimal("46000") - Decimal(net_salary)),
        )

    return _make


class TestProcessPayment:

    def test_single_payment(self, session, payment_processor, cash_service, make_payroll, make_bank_account):
        account = make_bank_account(Decimal("100000"))
        payroll = make_payroll(Decimal("46000"))

        paid = payment_processor.process_payment(
            payroll.id, account.id, actor_id=TEST_ACTOR_ID, payment_date=date(2024, 1, 31),
        )

        assert paid.payment_status is PayrollStatus.PAID
        assert paid.payment_date == date(2024, 1, 31)
        assert paid.bank_transaction_id is not None
        assert cash_service.get_account(account.id).current_balance == Decimal("54000.00")

        txn = session.get(BankTransactionModel, paid.bank_transaction_id)
        assert txn.category == TransactionCategory.SALARY.value
        assert txn.source_id == payroll.id
        assert txn.description == f"Salary 01/2024 ({payroll.payroll_number})"

    def test_insufficient_funds_leaves_payroll_pending(
        self, payment_processor, payroll_service, cash_service, make_payroll, make_bank_account,
    ):
        account = make_bank_account(Decimal("1000"))
        payroll = make_payroll(Decimal("3000"))

        with pytest.raises(InsufficientFundsError):
            payment_processor.process_payment(payroll.id, account.id, actor_id=TEST_ACTOR_ID)

        assert payroll_service.get_payroll(payroll.id).payment_status is PayrollStatus.PENDING
        assert cash_service.get_account(account.id).current_balance == Decimal("1000.00")

    def test_paying_twice_rejected(self, payment_processor, make_payroll, make_bank_account):
        account = make_bank_account(Decimal("100000"))
        payroll = make_payroll()
        payment_processor.process_payment(payroll.id, account.id, actor_id=TEST_ACTOR_ID)

        with pytest.raises(IllegalTransitionError):
            payment_processor.process_payment(payroll.id, account.id, actor_id=TEST_ACTOR_ID)


class TestBatchPayment:
    """Paying many payrolls from one account."""

    def test_whole_batch_rejected_when_total_exceeds_balance(
        self, payment_processor, payroll_service, cash_service, make_payroll, make_bank_account,
    ):
        account = make_bank_account(Decimal("10000"))
        payrolls = [make_payroll(Decimal(n)) for n in ("3000", "4000", "5000")]

        with pytest.raises(InsufficientFundsError) as exc_info:
            payment_processor.process_batch_payment(
                account.id, [p.id for p in payrolls], actor_id=TEST_ACTOR_ID,
            )

        assert exc_info.value.required == Decimal("12000.00")
        assert exc_info.value.available == Decimal("10000.00")
        assert cash_service.get_account(account.id).current_balance == Decimal("10000.00")
        assert cash_service.verify_balance(account.id).transaction_count == 0
        for payroll in payrolls:
            assert payroll_service.get_payroll(payroll.id).payment_status is PayrollStatus.PENDING

    def test_pays_all_pending(self, payment_processor, cash_service, make_payroll, make_bank_account, captured_logs):
        account = make_bank_account(Decimal("20000"))
        payrolls = [make_payroll(Decimal(n)) for n in ("3000", "4000", "5000")]

        result = payment_processor.process_batch_payment(
            account.id, [p.id for p in payrolls], actor_id=TEST_ACTOR_ID,
        )

        assert result.all_succeeded
        assert [s.payroll_id for s in result.succeeded] == [p.id for p in payrolls]
        assert result.total_requested == Decimal("12000.00")
        assert result.total_paid == Decimal("12000.00")
        assert result.closing_balance == Decimal("8000.00")
        assert cash_service.get_account(account.id).current_balance == Decimal("8000.00")
        assert cash_service.verify_balance(account.id).is_consistent

        summary = [r for r in captured_logs() if r["message"] == "batch_payment_completed"][-1]
        assert summary["succeeded"] == 3
        assert summary["total_paid"] == "12000.00"

    def test_zero_net_payroll_fails_alone(
        self, payment_processor, payroll_service, cash_service, make_employee, make_payroll, make_bank_account,
    ):
        account = make_bank_account(Decimal("20000"))
        good = make_payroll(Decimal("3000"))
        idle = make_employee(basic_salary=Decimal("0"))
        empty = payroll_service.generate_payroll(idle.id, 1, 2024, actor_id=TEST_ACTOR_ID)
        other = make_payroll(Decimal("4000"))

        result = payment_processor.process_batch_payment(
            account.id, [good.id, empty.id, other.id], actor_id=TEST_ACTOR_ID,
        )

        assert not result.all_succeeded
        assert [s.payroll_id for s in result.succeeded] == [good.id, other.id]
        assert [(f.payroll_id, f.error_code) for f in result.failed] == [(empty.id, "INVALID_AMOUNT")]
        assert result.total_paid == Decimal("7000.00")
        assert result.closing_balance == Decimal("13000.00")
        assert cash_service.get_account(account.id).current_balance == Decimal("13000.00")
        assert payroll_service.get_payroll(empty.id).payment_status is PayrollStatus.PENDING
        assert payroll_service.get_payroll(other.id).payment_status is PayrollStatus.PAID

    def test_non_pending_and_unknown_ids_are_skipped(
        self, payment_processor, payroll_service, make_payroll, make_bank_account,
    ):
        account = make_bank_account(Decimal("20000"))
        pending = make_payroll(Decimal("3000"))
        cancelled = make_payroll(Decimal("4000"))
        payroll_service.cancel_payroll(cancelled.id, actor_id=TEST_ACTOR_ID)
        missing = uuid4()

        result = payment_processor.process_batch_payment(
            account.id, [pending.id, cancelled.id, missing, pending.id], actor_id=TEST_ACTOR_ID,
        )

        assert [s.payroll_id for s in result.succeeded] == [pending.id]
        assert set(result.skipped) == {cancelled.id, missing}
        assert result.total_paid == Decimal("3000.00")

    def test_nothing_pending(self, payment_processor, payroll_service, make_payroll, make_bank_account):
        account = make_bank_account(Decimal("20000"))
        payroll = make_payroll(Decimal("3000"))
        payroll_service.cancel_payroll(payroll.id, actor_id=TEST_ACTOR_ID)

        with pytest.raises(NoPendingPayrollsError):
            payment_processor.process_batch_payment(account.id, [payroll.id], actor_id=TEST_ACTOR_ID)

    def test_empty_request(self, payment_processor, make_bank_account):
        account = make_bank_account(Decimal("100"))
        with pytest.raises(ValidationError):
            payment_processor.process_batch_payment(account.id, [], actor_id=TEST_ACTOR_ID)


class TestCancelPayment:

    def test_refund_and_installments_restored(
        self, payment_processor, payroll_service, loan_service, cash_service,
        make_employee, make_active_loan, make_bank_account,
    ):
        account = make_bank_account(Decimal("100000"))
        employee = make_employee(basic_salary=Decimal("50000"))
        loan = make_active_loan(employee.id)
        payroll = payroll_service.generate_payroll(employee.id, 1, 2024, actor_id=TEST_ACTOR_ID)
        payment_processor.process_payment(payroll.id, account.id, actor_id=TEST_ACTOR_ID)
        assert cash_service.get_account(account.id).current_balance == Decimal("55230.00")

        cancelled = payment_processor.cancel_payment(
            payroll.id, actor_id=TEST_ACTOR_ID, admin_override=True, reason="paid to wrong account",
        )

        assert cancelled.payment_status is PayrollStatus.CANCELLED
        assert "Payment cancelled by" in cancelled.remarks
        assert cash_service.get_account(account.id).current_balance == Decimal("100000.00")
        check = cash_service.verify_balance(account.id)
        assert check.is_consistent
        assert check.transaction_count == 2
        installment = loan_service.get_loan(loan.id).installments[0]
        assert installment.status is InstallmentStatus.PENDING
        assert installment.payroll_id is None

    def test_requires_admin_override(self, payment_processor, payroll_service, make_payroll, make_bank_account):
        account = make_bank_account(Decimal("100000"))
        payroll = make_payroll()
        payment_processor.process_payment(payroll.id, account.id, actor_id=TEST_ACTOR_ID)

        with pytest.raises(IllegalTransitionError):
            payment_processor.cancel_payment(payroll.id, actor_id=TEST_ACTOR_ID)
        assert payroll_service.get_payroll(payroll.id).payment_status is PayrollStatus.PAID

    def test_pending_payroll_has_no_payment_to_cancel(self, payment_processor, make_payroll):
        payroll = make_payroll()
        with pytest.raises(IllegalTransitionError):
            payment_processor.cancel_payment(payroll.id, actor_id=TEST_ACTOR_ID, admin_override=True)

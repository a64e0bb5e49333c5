"""
Tests for the bank book: CashService and BankLedger.

Validates:
- Deposits and withdrawals move the balance and record balance_after
- Withdrawals never overdraw the account
- Reversals append a compensating transaction, once
- The stored balance always matches opening balance + transactions
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_kernel.exceptions import (
    BankAccountNotFoundError,
    IllegalTransitionError,
    InsufficientFundsError,
    InvalidAmountError,
    ValidationError,
)
from forecourt_modules.cash.ledger import BankLedger
from forecourt_modules.cash.models import TransactionCategory, TransactionType
from forecourt_modules.cash.orm import BankAccountModel
from tests.conftest import TEST_ACTOR_ID


class TestOpenAccount:

    def test_opening_balance(self, cash_service):
        account = cash_service.open_account(
            "1010", "Main", actor_id=TEST_ACTOR_ID, opening_balance=Decimal("2500.50"),
        )
        assert account.opening_balance == Decimal("2500.50")
        assert account.current_balance == Decimal("2500.50")
        assert account.is_active

    def test_negative_opening_balance_rejected(self, cash_service):
        with pytest.raises(ValidationError):
            cash_service.open_account("1011", "Bad", actor_id=TEST_ACTOR_ID, opening_balance=Decimal("-1"))

    def test_account_code_required(self, cash_service):
        with pytest.raises(ValidationError):
            cash_service.open_account("", "Nameless", actor_id=TEST_ACTOR_ID)

    def test_unknown_account(self, cash_service):
        with pytest.raises(BankAccountNotFoundError):
            cash_service.get_account(uuid4())


class TestMovements:

    def test_deposit_then_withdraw(self, cash_service, make_bank_account):
        account = make_bank_account(Decimal("1000"))

        deposit = cash_service.record_deposit(account.id, Decimal("500"), actor_id=TEST_ACTOR_ID)
        withdrawal = cash_service.record_withdrawal(
            account.id, Decimal("300.25"), actor_id=TEST_ACTOR_ID, description="Generator fuel",
        )

        assert deposit.transaction_type is TransactionType.DEPOSIT
        assert deposit.balance_after == Decimal("1500.00")
        assert withdrawal.balance_after == Decimal("1199.75")
        assert withdrawal.signed_amount == Decimal("-300.25")
        assert cash_service.get_account(account.id).current_balance == Decimal("1199.75")

    def test_overdraft_rejected_and_balance_unchanged(self, cash_service, make_bank_account):
        account = make_bank_account(Decimal("100"))

        with pytest.raises(InsufficientFundsError) as exc_info:
            cash_service.record_withdrawal(account.id, Decimal("100.01"), actor_id=TEST_ACTOR_ID)

        assert exc_info.value.required == Decimal("100.01")
        assert exc_info.value.available == Decimal("100.00")
        assert cash_service.get_account(account.id).current_balance == Decimal("100.00")
        assert cash_service.verify_balance(account.id).transaction_count == 0

    def test_withdraw_entire_balance(self, cash_service, make_bank_account):
        account = make_bank_account(Decimal("100"))
        cash_service.record_withdrawal(account.id, Decimal("100"), actor_id=TEST_ACTOR_ID)
        assert cash_service.get_account(account.id).current_balance == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount(self, cash_service, make_bank_account, amount):
        account = make_bank_account(Decimal("100"))
        with pytest.raises(InvalidAmountError):
            cash_service.record_deposit(account.id, amount, actor_id=TEST_ACTOR_ID)

    def test_inactive_account_rejected(self, session, cash_service, make_bank_account):
        account = make_bank_account(Decimal("100"))
        session.get(BankAccountModel, account.id).is_active = False
        session.commit()

        with pytest.raises(ValidationError):
            cash_service.record_deposit(account.id, Decimal("1"), actor_id=TEST_ACTOR_ID)

    def test_movement_is_logged(self, cash_service, make_bank_account, captured_logs):
        account = make_bank_account(Decimal("0"))
        cash_service.record_deposit(account.id, Decimal("42"), actor_id=TEST_ACTOR_ID)

        records = [r for r in captured_logs() if r["message"] == "bank_transaction_recorded"]
        assert records[-1]["amount"] == "42.00"
        assert records[-1]["operation"] == "record_deposit"
        assert records[-1]["actor_id"] == str(TEST_ACTOR_ID)


class TestReversal:
    """Reversals append the opposite movement and never delete."""

    def test_reversal_restores_balance(self, session, deterministic_clock, cash_service, make_bank_account):
        account = make_bank_account(Decimal("1000"))
        withdrawal = cash_service.record_withdrawal(account.id, Decimal("400"), actor_id=TEST_ACTOR_ID)

        ledger = BankLedger(session, deterministic_clock)
        refund = ledger.reverse(withdrawal.id, actor_id=TEST_ACTOR_ID, reason="duplicate")
        session.commit()

        assert refund.transaction_type == TransactionType.DEPOSIT.value
        assert refund.category == TransactionCategory.REVERSAL.value
        assert refund.reverses_transaction_id == withdrawal.id
        assert cash_service.get_account(account.id).current_balance == Decimal("1000.00")

    def test_second_reversal_rejected(self, session, deterministic_clock, cash_service, make_bank_account):
        account = make_bank_account(Decimal("1000"))
        deposit = cash_service.record_deposit(account.id, Decimal("50"), actor_id=TEST_ACTOR_ID)
        ledger = BankLedger(session, deterministic_clock)
        ledger.reverse(deposit.id, actor_id=TEST_ACTOR_ID, reason="wrong account")

        with pytest.raises(IllegalTransitionError):
            ledger.reverse(deposit.id, actor_id=TEST_ACTOR_ID, reason="again")


class TestVerifyBalance:
    """Stored balance against opening balance plus transactions."""

    def test_consistent_after_activity(self, cash_service, make_bank_account):
        account = make_bank_account(Decimal("5000"))
        cash_service.record_deposit(account.id, Decimal("1200"), actor_id=TEST_ACTOR_ID)
        cash_service.record_withdrawal(account.id, Decimal("700"), actor_id=TEST_ACTOR_ID)
        cash_service.record_deposit(account.id, Decimal("0.01"), actor_id=TEST_ACTOR_ID)

        check = cash_service.verify_balance(account.id)
        assert check.is_consistent
        assert check.expected_balance == Decimal("5500.01")
        assert check.transactions_total == Decimal("500.01")
        assert check.transaction_count == 3

    def test_detects_tampered_balance(self, session, cash_service, make_bank_account, captured_logs):
        account = make_bank_account(Decimal("100"))
        session.get(BankAccountModel, account.id).current_balance = Decimal("150")
        session.commit()

        check = cash_service.verify_balance(account.id)
        assert not check.is_consistent
        assert check.difference == Decimal("50.00")
        assert any(r["message"] == "bank_balance_mismatch" for r in captured_logs())

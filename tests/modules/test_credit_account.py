"""
Tests for the customer credit account (CreditAccountService).

Validates:
- available_credit always equals credit_limit - current_balance
- Decreases never take the balance below zero
- has_sufficient_credit honours enabled flag, status and available credit
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_kernel.exceptions import (
    CreditBalanceUnderflowError,
    CustomerNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from forecourt_modules.ar.models import CreditStatus
from tests.conftest import TEST_ACTOR_ID


class TestIncreaseDecrease:
    """Balance moves keep available_credit in step."""

    def test_increase_reduces_available_credit(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("50000"))

        account = credit_service.increase(customer.id, Decimal("1230.00"), actor_id=TEST_ACTOR_ID)

        assert account.current_balance == Decimal("1230.00")
        assert account.available_credit == Decimal("48770.00")

    def test_decrease_restores_available_credit(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("50000"))
        credit_service.increase(customer.id, Decimal("1000"), actor_id=TEST_ACTOR_ID)

        account = credit_service.decrease(customer.id, Decimal("400"), actor_id=TEST_ACTOR_ID)

        assert account.current_balance == Decimal("600.00")
        assert account.available_credit == Decimal("49400.00")

    def test_decrease_below_zero_rejected(self, credit_service, make_customer, captured_logs):
        customer = make_customer()
        credit_service.increase(customer.id, Decimal("100"), actor_id=TEST_ACTOR_ID)

        with pytest.raises(CreditBalanceUnderflowError) as exc_info:
            credit_service.decrease(customer.id, Decimal("100.01"), actor_id=TEST_ACTOR_ID)

        assert exc_info.value.code == "CREDIT_BALANCE_UNDERFLOW"
        assert credit_service.get_account(customer.id).current_balance == Decimal("100.00")
        assert any(r["message"] == "credit_balance_underflow_rejected" for r in captured_logs())

    def test_decrease_to_exactly_zero(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("500"))
        credit_service.increase(customer.id, Decimal("500"), actor_id=TEST_ACTOR_ID)

        account = credit_service.decrease(customer.id, Decimal("500"), actor_id=TEST_ACTOR_ID)

        assert account.current_balance == Decimal("0.00")
        assert account.available_credit == Decimal("500.00")

    def test_balance_may_exceed_limit(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("1000"))

        account = credit_service.increase(customer.id, Decimal("1500"), actor_id=TEST_ACTOR_ID)

        assert account.available_credit == Decimal("-500.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    def test_non_positive_amount_rejected(self, credit_service, make_customer, amount):
        customer = make_customer()
        with pytest.raises(InvalidAmountError):
            credit_service.increase(customer.id, amount, actor_id=TEST_ACTOR_ID)

    def test_unknown_customer(self, credit_service, tables):
        with pytest.raises(CustomerNotFoundError):
            credit_service.increase(uuid4(), Decimal("1"), actor_id=TEST_ACTOR_ID)


class TestSufficientCredit:

    def test_within_available(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("1000"))
        credit_service.increase(customer.id, Decimal("400"), actor_id=TEST_ACTOR_ID)

        assert credit_service.has_sufficient_credit(customer.id, Decimal("600"))
        assert not credit_service.has_sufficient_credit(customer.id, Decimal("600.01"))

    def test_disabled_account(self, credit_service, make_customer):
        customer = make_customer(credit_enabled=False)
        assert not credit_service.has_sufficient_credit(customer.id, Decimal("1"))

    def test_suspended_account(self, credit_service, make_customer):
        customer = make_customer()
        credit_service.configure(
            customer.id, actor_id=TEST_ACTOR_ID, credit_status=CreditStatus.SUSPENDED,
        )
        assert not credit_service.has_sufficient_credit(customer.id, Decimal("1"))


class TestConfigure:

    def test_limit_change_recomputes_available(self, credit_service, make_customer):
        customer = make_customer(credit_limit=Decimal("1000"))
        credit_service.increase(customer.id, Decimal("250"), actor_id=TEST_ACTOR_ID)

        account = credit_service.configure(
            customer.id, actor_id=TEST_ACTOR_ID, credit_limit=Decimal("2000"),
        )

        assert account.credit_limit == Decimal("2000.00")
        assert account.available_credit == Decimal("1750.00")

    def test_negative_limit_rejected(self, credit_service, make_customer):
        customer = make_customer()
        with pytest.raises(ValidationError):
            credit_service.configure(customer.id, actor_id=TEST_ACTOR_ID, credit_limit=Decimal("-1"))

    def test_none_leaves_fields_unchanged(self, credit_service, make_customer):
        customer = make_customer(payment_terms_days=45)

        account = credit_service.configure(customer.id, actor_id=TEST_ACTOR_ID, credit_enabled=False)

        assert account.credit_enabled is False
        assert account.payment_terms_days == 45
        assert account.credit_status is CreditStatus.ACTIVE

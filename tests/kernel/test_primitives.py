"""
Tests for kernel primitives: money rounding, the clock, document numbers
and the exception taxonomy.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from forecourt_kernel.db.types import ZERO, round_money, to_decimal
from forecourt_kernel.domain.clock import DeterministicClock, SystemClock
from forecourt_kernel.exceptions import (
    BusinessRuleViolation,
    CreditBalanceUnderflowError,
    EmployeeNotFoundError,
    ForecourtError,
    InvalidAmountError,
    ResourceNotFoundError,
    ValidationError,
)
from forecourt_kernel.utils.numbering import (
    INVOICE_PREFIX,
    PAYROLL_PREFIX,
    document_number,
)


class TestRoundMoney:
    """round_money is half-up to two places."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (Decimal("1230.005"), Decimal("1230.01")),
            (Decimal("1230.004"), Decimal("1230.00")),
            (Decimal("-0.005"), Decimal("-0.01")),
            (Decimal("14760"), Decimal("14760.00")),
        ],
    )
    def test_half_up(self, value, expected):
        assert round_money(value) == expected
        assert round_money(value).as_tuple().exponent == -2

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal("2.50") == Decimal("2.50")

    def test_zero_constant(self):
        assert ZERO == Decimal("0")


class TestClock:

    def test_deterministic_clock_is_stable(self):
        clock = DeterministicClock(datetime(2024, 3, 31, 23, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()
        assert clock.today() == date(2024, 3, 31)

    def test_advance_days(self):
        clock = DeterministicClock()
        start = clock.today()
        clock.advance_days(45)
        assert (clock.today() - start).days == 45

    def test_set_date(self):
        clock = DeterministicClock()
        clock.set_date(date(2024, 6, 1))
        assert clock.today() == date(2024, 6, 1)
        assert clock.now_utc().tzinfo == timezone.utc

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None


class TestDocumentNumber:

    def test_format(self):
        number = document_number(INVOICE_PREFIX, date(2024, 1, 15))
        prefix, day, suffix = number.split("-")
        assert prefix == "INV"
        assert day == "20240115"
        assert len(suffix) == 6

    def test_numbers_differ(self):
        numbers = {document_number(PAYROLL_PREFIX, date(2024, 1, 31)) for _ in range(50)}
        assert len(numbers) == 50

    def test_rejects_bad_prefix(self):
        with pytest.raises(ValueError):
            document_number("IN-V", date(2024, 1, 1))


class TestExceptionTaxonomy:
    """Exceptions group under ForecourtError and carry machine-readable codes."""

    def test_invalid_amount_is_validation_error(self):
        exc = InvalidAmountError("amount", Decimal("0"))
        assert isinstance(exc, ValidationError)
        assert isinstance(exc, ForecourtError)
        assert exc.code == "INVALID_AMOUNT"
        assert exc.field == "amount"

    def test_business_rule_attributes(self):
        exc = CreditBalanceUnderflowError("c-1", Decimal("10.00"), Decimal("5.00"))
        assert isinstance(exc, BusinessRuleViolation)
        assert exc.current_balance == Decimal("5.00")
        assert "c-1" in str(exc)

    def test_not_found_message(self):
        exc = EmployeeNotFoundError("e-9")
        assert isinstance(exc, ResourceNotFoundError)
        assert str(exc) == "Employee not found: e-9"
        assert exc.code == "EMPLOYEE_NOT_FOUND"

    def test_domain_errors_are_not_value_errors(self):
        assert not issubclass(ForecourtError, ValueError)

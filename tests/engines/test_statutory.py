"""
Tests for the statutory contribution calculator.

Covers:
- Standard 8% / 12% / 3% rates
- Independent rounding of each contribution
- Injected rates
"""

from decimal import Decimal

import pytest

from forecourt_config.schema import StatutoryRates
from forecourt_engines.statutory import (
    StatutoryContributionCalculator,
    calculate_statutory_contributions,
)
from forecourt_kernel.exceptions import ValidationError


class TestStandardRates:

    def setup_method(self):
        self.calculator = StatutoryContributionCalculator(StatutoryRates())

    def test_fifty_thousand(self):
        result = self.calculator.calculate(Decimal("50000"))
        assert result.employee_contribution == Decimal("4000.00")
        assert result.employer_contribution == Decimal("6000.00")
        assert result.employer_levy == Decimal("1500.00")
        assert result.total_employer_contribution == Decimal("7500.00")

    def test_each_amount_rounded_half_up(self):
        result = self.calculator.calculate(Decimal("33333.33"))
        assert result.employee_contribution == Decimal("2666.67")
        assert result.employer_contribution == Decimal("4000.00")
        assert result.employer_levy == Decimal("1000.00")

    def test_zero_gross(self):
        result = self.calculator.calculate(Decimal("0"))
        assert result.total_employer_contribution == Decimal("0.00")

    def test_negative_gross_rejected(self):
        with pytest.raises(ValidationError):
            self.calculator.calculate(Decimal("-1"))


class TestInjectedRates:

    def test_custom_rates(self):
        rates = StatutoryRates(
            employee_rate=Decimal("10"), employer_rate=Decimal("15"), levy_rate=Decimal("0"),
        )
        result = calculate_statutory_contributions(Decimal("20000"), rates)
        assert result.employee_contribution == Decimal("2000.00")
        assert result.employer_contribution == Decimal("3000.00")
        assert result.employer_levy == Decimal("0.00")

    def test_rates_exposed(self):
        rates = StatutoryRates(employee_rate=Decimal("9"))
        assert StatutoryContributionCalculator(rates).rates is rates

"""
Module: forecourt_engines.statutory
Responsibility:
    Compute retirement-fund contributions on gross pay: the employee share
    withheld from salary, the employer share, and the secondary employer
    levy.
Architecture position:
    Engines -- pure calculation layer, zero I/O.  Rates arrive through a
    ``StatutoryRates`` object injected at construction; the calculator
    never reads configuration on its own.
Invariants enforced:
    - Each contribution is rounded to 2 places independently.
    - total_employer_contribution == employer_contribution + employer_levy.
Failure modes:
    - ValidationError for negative gross pay.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from forecourt_config.schema import StatutoryRates
from forecourt_engines.tracer import traced_engine
from forecourt_kernel.db.types import round_money, to_decimal
from forecourt_kernel.exceptions import ValidationError

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class StatutoryContributions:
    """Contribution amounts for one gross-pay figure."""

    gross_pay: Decimal
    employee_contribution: Decimal
    employer_contribution: Decimal
    employer_levy: Decimal

    @property
    def total_employer_contribution(self) -> Decimal:
        return self.employer_contribution + self.employer_levy


class StatutoryContributionCalculator:
    """
    Contribution calculator bound to one set of rates.

    Usage:
        calc = StatutoryContributionCalculator(config.statutory)
        result = calc.calculate(Decimal("50000"))
        result.employee_contribution  # Decimal("4000.00")
    """

    def __init__(self, rates: StatutoryRates):
        self._rates = rates

    @property
    def rates(self) -> StatutoryRates:
        return self._rates

    @traced_engine("statutory", "1.0", fingerprint_fields=("gross_pay",))
    def calculate(self, gross_pay: Decimal) -> StatutoryContributions:
        gross_pay = to_decimal(gross_pay)
        if gross_pay < 0:
            raise ValidationError("gross_pay", f"cannot be negative, got {gross_pay}")
        return StatutoryContributions(
            gross_pay=gross_pay,
            employee_contribution=round_money(gross_pay * self._rates.employee_rate / _HUNDRED),
            employer_contribution=round_money(gross_pay * self._rates.employer_rate / _HUNDRED),
            employer_levy=round_money(gross_pay * self._rates.levy_rate / _HUNDRED),
        )


def calculate_statutory_contributions(
    gross_pay: Decimal,
    rates: StatutoryRates,
) -> StatutoryContributions:
    """Functional form of ``StatutoryContributionCalculator(rates).calculate``."""
    return StatutoryContributionCalculator(rates).calculate(gross_pay)

"""
Configuration Schema (``forecourt_config.schema``).

Typed configuration objects for the forecourt engine.  Statutory rates,
loan policy and invoicing policy are passed into calculators and services
at construction; nothing reads configuration at import time.

Rates are expressed in percent (``Decimal("8")`` means 8%), matching how
payroll and finance staff state them.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Self

from forecourt_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_HUNDRED = Decimal("100")


def _as_decimal(data: dict, key: str) -> None:
    if key in data and not isinstance(data[key], Decimal):
        data[key] = Decimal(str(data[key]))


def _check_percent(name: str, value: Decimal) -> None:
    if value < 0:
        raise ValueError(f"{name} cannot be negative")
    if value > _HUNDRED:
        raise ValueError(f"{name} cannot exceed 100 (percent)")


@dataclass(frozen=True)
class StatutoryRates:
    """
    Retirement-fund contribution rates applied to gross pay.

    employee_rate: withheld from the employee (EPF employee share).
    employer_rate: paid by the employer (EPF employer share).
    levy_rate: secondary employer levy (ETF).
    """

    employee_rate: Decimal = Decimal("8")
    employer_rate: Decimal = Decimal("12")
    levy_rate: Decimal = Decimal("3")

    def __post_init__(self):
        _check_percent("employee_rate", self.employee_rate)
        _check_percent("employer_rate", self.employer_rate)
        _check_percent("levy_rate", self.levy_rate)
        logger.debug(
            "statutory_rates_initialized",
            extra={
                "employee_rate": str(self.employee_rate),
                "employer_rate": str(self.employer_rate),
                "levy_rate": str(self.levy_rate),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        data = dict(data)
        for key in ("employee_rate", "employer_rate", "levy_rate"):
            _as_decimal(data, key)
        return cls(**data)


@dataclass(frozen=True)
class LoanPolicy:
    """Employee loan terms."""

    annual_interest_rate: Decimal = Decimal("23")
    max_open_loans: int = 1
    min_principal: Decimal = Decimal("0.01")
    max_duration_months: int = 120

    def __post_init__(self):
        _check_percent("annual_interest_rate", self.annual_interest_rate)
        if self.max_open_loans < 1:
            raise ValueError("max_open_loans must be at least 1")
        if self.min_principal <= 0:
            raise ValueError("min_principal must be positive")
        if self.max_duration_months < 1:
            raise ValueError("max_duration_months must be at least 1")
        logger.debug(
            "loan_policy_initialized",
            extra={
                "annual_interest_rate": str(self.annual_interest_rate),
                "max_open_loans": self.max_open_loans,
                "max_duration_months": self.max_duration_months,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        data = dict(data)
        for key in ("annual_interest_rate", "min_principal"):
            _as_decimal(data, key)
        return cls(**data)


@dataclass(frozen=True)
class InvoicingPolicy:
    """Customer invoicing settings."""

    default_payment_terms_days: int = 30
    enforce_credit_limit: bool = False

    def __post_init__(self):
        if self.default_payment_terms_days < 0:
            raise ValueError("default_payment_terms_days cannot be negative")
        logger.debug(
            "invoicing_policy_initialized",
            extra={
                "default_payment_terms_days": self.default_payment_terms_days,
                "enforce_credit_limit": self.enforce_credit_limit,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls(**data)


@dataclass(frozen=True)
class EngineConfig:
    """
    Complete engine configuration.

    Override at instantiation with site-specific values:

        config = EngineConfig(
            statutory=StatutoryRates(employee_rate=Decimal("10")),
        )
    """

    statutory: StatutoryRates = field(default_factory=StatutoryRates)
    loans: LoanPolicy = field(default_factory=LoanPolicy)
    invoicing: InvoicingPolicy = field(default_factory=InvoicingPolicy)

    def __post_init__(self):
        logger.info(
            "engine_config_initialized",
            extra={
                "statutory_employee_rate": str(self.statutory.employee_rate),
                "statutory_employer_rate": str(self.statutory.employer_rate),
                "statutory_levy_rate": str(self.statutory.levy_rate),
                "loan_interest_rate": str(self.loans.annual_interest_rate),
                "payment_terms_days": self.invoicing.default_payment_terms_days,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard statutory and loan defaults."""
        logger.info("engine_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g., parsed YAML)."""
        logger.info(
            "engine_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        unknown = set(data) - {"statutory", "loans", "invoicing"}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
        return cls(
            statutory=StatutoryRates.from_dict(data.get("statutory") or {}),
            loans=LoanPolicy.from_dict(data.get("loans") or {}),
            invoicing=InvoicingPolicy.from_dict(data.get("invoicing") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view (Decimals as strings), used for checksums."""
        return {
            "statutory": {
                "employee_rate": str(self.statutory.employee_rate),
                "employer_rate": str(self.statutory.employer_rate),
                "levy_rate": str(self.statutory.levy_rate),
            },
            "loans": {
                "annual_interest_rate": str(self.loans.annual_interest_rate),
                "max_open_loans": self.loans.max_open_loans,
                "min_principal": str(self.loans.min_principal),
                "max_duration_months": self.loans.max_duration_months,
            },
            "invoicing": {
                "default_payment_terms_days": self.invoicing.default_payment_terms_days,
                "enforce_credit_limit": self.invoicing.enforce_credit_limit,
            },
        }

"""
Module: forecourt_engines
Responsibility:
    Pure calculation engines for the forecourt financial consistency
    engine.  Re-exports the public calculators and their value types.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import
    forecourt_kernel (types, exceptions, logging) and forecourt_config
    schema objects.  MUST NOT import forecourt_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by services that own a Clock.
    - Decimal-only arithmetic, rounded with ``round_money``.
    - Determinism: identical inputs always produce identical outputs.
"""

from forecourt_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgedItem,
    AgingCalculator,
    AgingReport,
)
from forecourt_engines.amortization import (
    LoanSchedule,
    ScheduledInstallment,
    add_months,
    compute_loan_schedule,
)
from forecourt_engines.invoice_totals import (
    DiscountType,
    InvoicePaymentStatus,
    InvoiceTotals,
    compute_invoice_totals,
    derive_payment_status,
    line_amount,
)
from forecourt_engines.payroll_calculator import (
    AdditionalDeductions,
    AdditionalEarnings,
    Allowance,
    InstallmentSnapshot,
    LoanDeduction,
    LoanSnapshot,
    PayrollCalculation,
    PayrollCalculator,
    SalaryStructure,
)
from forecourt_engines.statutory import (
    StatutoryContributionCalculator,
    StatutoryContributions,
    calculate_statutory_contributions,
)

__all__ = [
    "STANDARD_BUCKETS",
    "AgeBucket",
    "AgedItem",
    "AgingCalculator",
    "AgingReport",
    "LoanSchedule",
    "ScheduledInstallment",
    "add_months",
    "compute_loan_schedule",
    "DiscountType",
    "InvoicePaymentStatus",
    "InvoiceTotals",
    "compute_invoice_totals",
    "derive_payment_status",
    "line_amount",
    "AdditionalDeductions",
    "AdditionalEarnings",
    "Allowance",
    "InstallmentSnapshot",
    "LoanDeduction",
    "LoanSnapshot",
    "PayrollCalculation",
    "PayrollCalculator",
    "SalaryStructure",
    "StatutoryContributionCalculator",
    "StatutoryContributions",
    "calculate_statutory_contributions",
]

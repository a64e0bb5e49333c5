"""
Employee Loans Module.

Loan application and approval, the persisted amortization schedule, and
installment consumption by payroll.  The service lives in
``loans.service``.
"""

from forecourt_modules.loans.models import (
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanStatus,
)
from forecourt_modules.loans.workflows import LOAN_WORKFLOW

__all__ = [
    "InstallmentStatus",
    "Loan",
    "LoanInstallment",
    "LoanStatus",
    "LOAN_WORKFLOW",
]

"""
Payroll Module.

Monthly payroll generation (earnings, statutory contributions, loan
deductions, net salary) in ``payroll.service``, and salary payment from a
bank account, singly or in batches, in ``payroll.payments``.
"""

from forecourt_modules.payroll.models import (
    BatchPaymentFailure,
    BatchPaymentResult,
    BatchPaymentSuccess,
    Employee,
    EmployeeAllowance,
    Payroll,
    PayrollGenerationBatchResult,
    PayrollGenerationFailure,
    PayrollLoanDeduction,
    PayrollStatus,
)
from forecourt_modules.payroll.workflows import PAYROLL_WORKFLOW

__all__ = [
    "BatchPaymentFailure",
    "BatchPaymentResult",
    "BatchPaymentSuccess",
    "Employee",
    "EmployeeAllowance",
    "Payroll",
    "PayrollGenerationBatchResult",
    "PayrollGenerationFailure",
    "PayrollLoanDeduction",
    "PayrollStatus",
    "PAYROLL_WORKFLOW",
]

"""
Typed Exception Hierarchy for the Forecourt engine.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ForecourtError:

    ForecourtError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |
    +-- BusinessRuleViolation
    |   +-- PaymentExceedsAmountDueError
    |   +-- CreditBalanceUnderflowError
    |   +-- CreditLimitExceededError
    |   +-- CreditAccountDisabledError
    |   +-- DuplicatePayrollError
    |   +-- OpenLoanLimitError
    |   +-- InvoiceTotalBelowPaidError
    |   +-- NoInvoiceableSalesError
    |   +-- NoPendingPayrollsError
    |   +-- IllegalTransitionError
    |
    +-- ResourceNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- LoanNotFoundError
    |   +-- InstallmentNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- BankAccountNotFoundError
    |   +-- BankTransactionNotFoundError
    |   +-- PayrollNotFoundError
    |
    +-- InsufficientFundsError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
Validation      | VALIDATION_ERROR              | Bad input shape or range
                | INVALID_AMOUNT                | Zero/negative money where positive required
----------------|-------------------------------|-------------------------------------
Business rule   | PAYMENT_EXCEEDS_AMOUNT_DUE    | Invoice payment larger than amount due
                | CREDIT_BALANCE_UNDERFLOW      | Credit decrease larger than balance
                | CREDIT_LIMIT_EXCEEDED         | Credit invoice over available credit
                | CREDIT_ACCOUNT_DISABLED       | Customer has no enabled credit account
                | DUPLICATE_PAYROLL             | Payroll exists for employee/month/year
                | OPEN_LOAN_LIMIT               | Employee already has an open loan
                | INVOICE_TOTAL_BELOW_PAID      | Revised total lower than amount paid
                | NO_INVOICEABLE_SALES          | No uninvoiced credit sales in range
                | NO_PENDING_PAYROLLS           | Batch selected no pending payrolls
                | ILLEGAL_TRANSITION            | Workflow forbids the requested action
----------------|-------------------------------|-------------------------------------
Not found       | *_NOT_FOUND                   | Referenced record does not exist
----------------|-------------------------------|-------------------------------------
Funds           | INSUFFICIENT_FUNDS            | Bank balance below required amount
----------------|-------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Row version changed underneath us
----------------|-------------------------------|-------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Update/delete of an append-only row

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch specific types and read structured attributes, never parse messages:

    try:
        processor.process_payment(payroll_id, account_id, actor_id=actor)
    except InsufficientFundsError as e:
        return {"error": e.code, "required": e.required, "available": e.available}

Domain exceptions inherit from Exception (not ValueError) so they can be
caught as a group without mixing in programming errors.
"""

from decimal import Decimal


class ForecourtError(Exception):
    """
    Base exception for all forecourt engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "FORECOURT_ERROR"


# Validation


class ValidationError(ForecourtError):
    """Input failed a shape or range check."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary amount was zero or negative where a positive one is required."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal):
        self.amount = amount
        super().__init__(field, f"must be greater than zero, got {amount}")


# Business rules


class BusinessRuleViolation(ForecourtError):
    """Base exception for rejected operations on otherwise valid input."""

    code: str = "BUSINESS_RULE_VIOLATION"


class PaymentExceedsAmountDueError(BusinessRuleViolation):
    """Payment amount is larger than the invoice's outstanding amount."""

    code: str = "PAYMENT_EXCEEDS_AMOUNT_DUE"

    def __init__(self, invoice_id: str, amount: Decimal, amount_due: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.amount_due = amount_due
        super().__init__(
            f"Payment {amount} exceeds amount due {amount_due} on invoice {invoice_id}"
        )


class CreditBalanceUnderflowError(BusinessRuleViolation):
    """Credit decrease would take the balance below zero."""

    code: str = "CREDIT_BALANCE_UNDERFLOW"

    def __init__(self, customer_id: str, amount: Decimal, current_balance: Decimal):
        self.customer_id = customer_id
        self.amount = amount
        self.current_balance = current_balance
        super().__init__(
            f"Cannot decrease credit balance of customer {customer_id} by {amount}: "
            f"current balance is {current_balance}"
        )


class CreditLimitExceededError(BusinessRuleViolation):
    """Customer does not have enough available credit."""

    code: str = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, customer_id: str, amount: Decimal, available_credit: Decimal):
        self.customer_id = customer_id
        self.amount = amount
        self.available_credit = available_credit
        super().__init__(
            f"Customer {customer_id} has {available_credit} available credit, "
            f"{amount} required"
        )


class CreditAccountDisabledError(BusinessRuleViolation):
    """Customer has no enabled credit account."""

    code: str = "CREDIT_ACCOUNT_DISABLED"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Credit account is not enabled for customer {customer_id}")


class DuplicatePayrollError(BusinessRuleViolation):
    """A payroll record already exists for the employee and period."""

    code: str = "DUPLICATE_PAYROLL"

    def __init__(self, employee_id: str, month: int, year: int):
        self.employee_id = employee_id
        self.month = month
        self.year = year
        super().__init__(
            f"Payroll already exists for employee {employee_id} for {month:02d}/{year}"
        )


class OpenLoanLimitError(BusinessRuleViolation):
    """Employee already holds the maximum number of pending/active loans."""

    code: str = "OPEN_LOAN_LIMIT"

    def __init__(self, employee_id: str, open_loans: int, limit: int):
        self.employee_id = employee_id
        self.open_loans = open_loans
        self.limit = limit
        super().__init__(
            f"Employee {employee_id} has {open_loans} open loan(s); limit is {limit}"
        )


class InvoiceTotalBelowPaidError(BusinessRuleViolation):
    """A revision would lower the invoice total below what has been paid."""

    code: str = "INVOICE_TOTAL_BELOW_PAID"

    def __init__(self, invoice_id: str, total_amount: Decimal, amount_paid: Decimal):
        self.invoice_id = invoice_id
        self.total_amount = total_amount
        self.amount_paid = amount_paid
        super().__init__(
            f"Invoice {invoice_id} total {total_amount} would be below "
            f"amount paid {amount_paid}"
        )


class NoInvoiceableSalesError(BusinessRuleViolation):
    """No uninvoiced credit sales exist for the customer in the period."""

    code: str = "NO_INVOICEABLE_SALES"

    def __init__(self, customer_id: str, start_date, end_date):
        self.customer_id = customer_id
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"No uninvoiced credit sales for customer {customer_id} "
            f"between {start_date} and {end_date}"
        )


class NoPendingPayrollsError(BusinessRuleViolation):
    """None of the requested payrolls is pending payment."""

    code: str = "NO_PENDING_PAYROLLS"

    def __init__(self, requested: int):
        self.requested = requested
        super().__init__(f"No pending payrolls among {requested} requested")


class IllegalTransitionError(BusinessRuleViolation):
    """The entity's workflow does not allow the requested action."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, from_state: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state '{from_state}'"
        )


# Not found


class ResourceNotFoundError(ForecourtError):
    """Referenced record does not exist."""

    code: str = "RESOURCE_NOT_FOUND"
    entity_type: str = "Resource"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class EmployeeNotFoundError(ResourceNotFoundError):
    code: str = "EMPLOYEE_NOT_FOUND"
    entity_type = "Employee"


class LoanNotFoundError(ResourceNotFoundError):
    code: str = "LOAN_NOT_FOUND"
    entity_type = "Loan"


class InstallmentNotFoundError(ResourceNotFoundError):
    code: str = "INSTALLMENT_NOT_FOUND"
    entity_type = "Installment"


class InvoiceNotFoundError(ResourceNotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type = "Invoice"


class CustomerNotFoundError(ResourceNotFoundError):
    code: str = "CUSTOMER_NOT_FOUND"
    entity_type = "Customer"


class BankAccountNotFoundError(ResourceNotFoundError):
    code: str = "BANK_ACCOUNT_NOT_FOUND"
    entity_type = "BankAccount"


class BankTransactionNotFoundError(ResourceNotFoundError):
    code: str = "BANK_TRANSACTION_NOT_FOUND"
    entity_type = "BankTransaction"


class PayrollNotFoundError(ResourceNotFoundError):
    code: str = "PAYROLL_NOT_FOUND"
    entity_type = "Payroll"


# Funds


class InsufficientFundsError(ForecourtError):
    """Bank account balance does not cover the required amount."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id: str, required: Decimal, available: Decimal):
        self.account_id = account_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient funds in bank account {account_id}: "
            f"required {required}, available {available}"
        )


# Concurrency


class ConcurrencyError(ForecourtError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability


class ImmutabilityViolationError(ForecourtError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )

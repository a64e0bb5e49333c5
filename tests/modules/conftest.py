"""
Shared fixtures for module tests.

Provides service fixtures bound to the test session and deterministic
clock, and factory fixtures for the parent records module services need
(employees, customers, bank accounts, fuel sales, loans).

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which services and factories it depends on in its signature.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_config.schema import EngineConfig
from forecourt_modules.ar.credit import CreditAccountService
from forecourt_modules.ar.orm import CustomerModel
from forecourt_modules.ar.service import InvoiceService
from forecourt_modules.cash.service import CashService
from forecourt_modules.loans.service import LoanService
from forecourt_modules.payroll.orm import EmployeeAllowanceModel, EmployeeModel
from forecourt_modules.payroll.payments import PayrollPaymentProcessor
from forecourt_modules.payroll.service import PayrollService
from forecourt_modules.sales.models import FuelType, SalePaymentMethod
from forecourt_modules.sales.orm import SaleModel
from tests.conftest import TEST_ACTOR_ID


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig.with_defaults()


@pytest.fixture
def cash_service(session, deterministic_clock):
    return CashService(session, clock=deterministic_clock)


@pytest.fixture
def credit_service(session):
    return CreditAccountService(session)


@pytest.fixture
def invoice_service(session, deterministic_clock, engine_config):
    return InvoiceService(session, clock=deterministic_clock, policy=engine_config.invoicing)


@pytest.fixture
def loan_service(session, deterministic_clock, engine_config):
    return LoanService(session, clock=deterministic_clock, policy=engine_config.loans)


@pytest.fixture
def payroll_service(session, deterministic_clock, engine_config):
    return PayrollService(session, clock=deterministic_clock, config=engine_config)


@pytest.fixture
def payment_processor(session, deterministic_clock, engine_config):
    return PayrollPaymentProcessor(session, clock=deterministic_clock, config=engine_config)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_employee(session):
    """Create and commit an employee; returns the ORM row."""

    def _make(
        basic_salary=Decimal("50000"),
        allowances: dict | None = None,
        is_active: bool = True,
        name: str = "Pump Attendant",
    ) -> EmployeeModel:
        employee = EmployeeModel(
            employee_code=f"EMP-{uuid4().hex[:8].upper()}",
            name=name,
            basic_salary=Decimal(basic_salary),
            is_active=is_active,
            created_by_id=TEST_ACTOR_ID,
        )
        employee.allowances = [
            EmployeeAllowanceModel(
                allowance_type=allowance_type,
                amount=Decimal(amount),
                created_by_id=TEST_ACTOR_ID,
            )
            for allowance_type, amount in (allowances or {}).items()
        ]
        session.add(employee)
        session.commit()
        return employee

    return _make


@pytest.fixture
def make_customer(session):
    """Create and commit a customer with a credit account."""

    def _make(
        credit_enabled: bool = True,
        credit_limit=Decimal("100000"),
        payment_terms_days: int = 30,
        is_active: bool = True,
        name: str = "City Taxi Co",
    ) -> CustomerModel:
        limit = Decimal(credit_limit)
        customer = CustomerModel(
            customer_code=f"CUS-{uuid4().hex[:8].upper()}",
            name=name,
            is_active=is_active,
            credit_enabled=credit_enabled,
            credit_limit=limit,
            current_balance=Decimal("0"),
            available_credit=limit,
            credit_status="Active",
            payment_terms_days=payment_terms_days,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(customer)
        session.commit()
        return customer

    return _make


@pytest.fixture
def make_bank_account(cash_service):
    """Open a bank account through CashService; returns the DTO."""

    def _make(opening_balance=Decimal("0"), account_code: str | None = None):
        return cash_service.open_account(
            account_code or f"BA-{uuid4().hex[:6].upper()}",
            "Operating Account",
            actor_id=TEST_ACTOR_ID,
            opening_balance=Decimal(opening_balance),
            bank_name="People's Bank",
        )

    return _make


@pytest.fixture
def make_sale(session):
    """Record a fuel sale directly; returns the ORM row."""

    def _make(
        customer_id=None,
        fuel_type: FuelType = FuelType.AUTO_DIESEL,
        quantity=Decimal("100"),
        unit_price=Decimal("350"),
        sale_date: date = date(2024, 1, 10),
        payment_method: SalePaymentMethod = SalePaymentMethod.CREDIT,
        station_code: str | None = "ST-01",
    ) -> SaleModel:
        quantity, unit_price = Decimal(quantity), Decimal(unit_price)
        sale = SaleModel(
            sale_number=f"SALE-{uuid4().hex[:8].upper()}",
            sale_date=sale_date,
            station_code=station_code,
            fuel_type=fuel_type.value,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=(quantity * unit_price).quantize(Decimal("0.01")),
            payment_method=payment_method.value,
            customer_id=customer_id,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(sale)
        session.commit()
        return sale

    return _make


@pytest.fixture
def make_active_loan(loan_service):
    """Apply for and approve a loan; returns the DTO."""

    def _make(
        employee_id,
        principal=Decimal("12000"),
        months: int = 12,
        start_date: date = date(2024, 1, 15),
    ):
        return loan_service.apply_for_loan(
            employee_id, Decimal(principal), months, start_date,
            actor_id=TEST_ACTOR_ID, purpose="Household", auto_approve=True,
        )

    return _make

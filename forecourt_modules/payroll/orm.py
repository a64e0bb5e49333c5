"""
Payroll ORM Models (``forecourt_modules.payroll.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the payroll module: employees with
their recurring allowances, monthly payroll records, and the loan
installments each payroll withheld.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``forecourt_kernel.db.base``
and sibling ``models.py``.

Invariants enforced
-------------------
* One payroll per employee per month (uq_payroll_payrolls_period).
* ``payroll_payrolls.version`` is the optimistic-lock column.
* The allowance breakdown is snapshotted on the payroll (JSON), so later
  changes to the employee do not rewrite history.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from forecourt_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# 1. EmployeeModel
# ---------------------------------------------------------------------------


class EmployeeModel(TrackedBase):
    """
    ORM model for ``Employee``.

    Guarantees:
        - employee_code is unique.
        - basic_salary is non-negative.
    """

    __tablename__ = "payroll_employees"

    __table_args__ = (
        UniqueConstraint("employee_code", name="uq_payroll_employees_employee_code"),
        CheckConstraint("basic_salary >= 0", name="ck_payroll_employees_basic_salary"),
    )

    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True)

    allowances: Mapped[list["EmployeeAllowanceModel"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeeAllowanceModel.allowance_type",
        lazy="selectin",
    )

    def to_dto(self):
        from forecourt_modules.payroll.models import Employee

        return Employee(
            id=self.id,
            employee_code=self.employee_code,
            name=self.name,
            basic_salary=self.basic_salary,
            is_active=self.is_active,
            allowances=tuple(a.to_dto() for a in self.allowances),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeModel":
        model = cls(
            id=dto.id,
            employee_code=dto.employee_code,
            name=dto.name,
            basic_salary=dto.basic_salary,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )
        model.allowances = [
            EmployeeAllowanceModel(
                allowance_type=a.allowance_type,
                amount=a.amount,
                created_by_id=created_by_id,
            )
            for a in dto.allowances
        ]
        return model

    def __repr__(self) -> str:
        return f"<EmployeeModel {self.employee_code} basic={self.basic_salary}>"


class EmployeeAllowanceModel(TrackedBase):
    """ORM model for a recurring employee allowance."""

    __tablename__ = "payroll_employee_allowances"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "allowance_type", name="uq_payroll_employee_allowances_type",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_employees.id"), nullable=False
    )
    allowance_type: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    employee: Mapped["EmployeeModel"] = relationship(back_populates="allowances")

    def to_dto(self):
        from forecourt_modules.payroll.models import EmployeeAllowance

        return EmployeeAllowance(allowance_type=self.allowance_type, amount=self.amount)


# ---------------------------------------------------------------------------
# 2. PayrollModel
# ---------------------------------------------------------------------------


class PayrollModel(TrackedBase):
    """
    ORM model for a monthly ``Payroll``.

    Guarantees:
        - (employee_id, pay_month, pay_year) is unique.
        - payment_status stored as the enum value string.
        - bank_transaction_id references the salary withdrawal once paid.
    """

    __tablename__ = "payroll_payrolls"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "pay_month", "pay_year", name="uq_payroll_payrolls_period",
        ),
        UniqueConstraint("payroll_number", name="uq_payroll_payrolls_payroll_number"),
        CheckConstraint("pay_month BETWEEN 1 AND 12", name="ck_payroll_payrolls_month"),
        Index("idx_payroll_payrolls_payment_status", "payment_status"),
    )

    payroll_number: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_employees.id"), nullable=False
    )
    pay_month: Mapped[int] = mapped_column(nullable=False)
    pay_year: Mapped[int] = mapped_column(nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    allowances: Mapped[list] = mapped_column(JSON, default=list)
    allowances_total: Mapped[Decimal] = mapped_column(nullable=False)
    overtime: Mapped[Decimal] = mapped_column(nullable=False)
    bonuses: Mapped[Decimal] = mapped_column(nullable=False)
    other_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False)

    employee_contribution: Mapped[Decimal] = mapped_column(nullable=False)
    loan_repayment: Mapped[Decimal] = mapped_column(nullable=False)
    advances: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)

    employer_contribution: Mapped[Decimal] = mapped_column(nullable=False)
    employer_levy: Mapped[Decimal] = mapped_column(nullable=False)
    total_contributions: Mapped[Decimal] = mapped_column(nullable=False)

    net_salary: Mapped[Decimal] = mapped_column(nullable=False)
    cost_to_company: Mapped[Decimal] = mapped_column(nullable=False)

    payment_status: Mapped[str] = mapped_column(String(20), default="Pending")
    payment_date: Mapped[date | None] = mapped_column(nullable=True)
    bank_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cash_bank_transactions.id"), nullable=True
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    loan_deductions: Mapped[list["PayrollLoanDeductionModel"]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollLoanDeductionModel.installment_number",
        lazy="selectin",
    )

    def to_dto(self):
        from forecourt_modules.payroll.models import (
            EmployeeAllowance,
            Payroll,
            PayrollStatus,
        )

        return Payroll(
            id=self.id,
            payroll_number=self.payroll_number,
            employee_id=self.employee_id,
            pay_month=self.pay_month,
            pay_year=self.pay_year,
            basic_salary=self.basic_salary,
            allowances=tuple(
                EmployeeAllowance(a["allowance_type"], Decimal(a["amount"]))
                for a in self.allowances or ()
            ),
            allowances_total=self.allowances_total,
            overtime=self.overtime,
            bonuses=self.bonuses,
            other_earnings=self.other_earnings,
            total_earnings=self.total_earnings,
            employee_contribution=self.employee_contribution,
            loan_repayment=self.loan_repayment,
            advances=self.advances,
            other_deductions=self.other_deductions,
            total_deductions=self.total_deductions,
            employer_contribution=self.employer_contribution,
            employer_levy=self.employer_levy,
            total_contributions=self.total_contributions,
            net_salary=self.net_salary,
            cost_to_company=self.cost_to_company,
            payment_status=PayrollStatus(self.payment_status),
            loan_deductions=tuple(d.to_dto() for d in self.loan_deductions),
            payment_date=self.payment_date,
            bank_transaction_id=self.bank_transaction_id,
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollModel {self.payroll_number} {self.pay_month:02d}/{self.pay_year} "
            f"net={self.net_salary} status={self.payment_status}>"
        )


class PayrollLoanDeductionModel(TrackedBase):
    """ORM model for one loan installment withheld by a payroll."""

    __tablename__ = "payroll_loan_deductions"

    __table_args__ = (
        Index("idx_payroll_loan_deductions_payroll_id", "payroll_id"),
        Index("idx_payroll_loan_deductions_loan_id", "loan_id"),
    )

    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_payrolls.id"), nullable=False
    )
    loan_id: Mapped[UUID] = mapped_column(ForeignKey("loans_loans.id"), nullable=False)
    installment_number: Mapped[int] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payroll: Mapped["PayrollModel"] = relationship(back_populates="loan_deductions")

    def to_dto(self):
        from forecourt_modules.payroll.models import PayrollLoanDeduction

        return PayrollLoanDeduction(
            loan_id=self.loan_id,
            installment_number=self.installment_number,
            amount=self.amount,
        )

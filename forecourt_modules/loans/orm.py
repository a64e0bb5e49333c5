"""
Employee Loan ORM Models (``forecourt_modules.loans.orm``).

Responsibility
--------------
SQLAlchemy persistence for loans and their installment schedules.

Invariants enforced
-------------------
* ``loans_loans.version`` is the optimistic-lock column.
* ``(loan_id, installment_number)`` is unique.
* ``remaining_amount`` is never negative.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from forecourt_kernel.db.base import TrackedBase


class LoanModel(TrackedBase):
    """
    ORM model for ``Loan``.

    Installments are loaded eagerly, ordered by number.
    """

    __tablename__ = "loans_loans"

    __table_args__ = (
        UniqueConstraint("loan_number", name="uq_loans_loans_loan_number"),
        CheckConstraint("remaining_amount >= 0", name="ck_loans_loans_remaining"),
        Index("idx_loans_loans_employee_status", "employee_id", "status"),
    )

    loan_number: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_employees.id"), nullable=False
    )
    principal: Mapped[Decimal] = mapped_column(nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_repayable: Mapped[Decimal] = mapped_column(nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    duration_months: Mapped[int] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(nullable=False)
    purpose: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approval_date: Mapped[date | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    installments: Mapped[list["LoanInstallmentModel"]] = relationship(
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanInstallmentModel.installment_number",
        lazy="selectin",
    )

    def installment(self, number: int) -> "LoanInstallmentModel | None":
        for row in self.installments:
            if row.installment_number == number:
                return row
        return None

    def to_dto(self):
        from forecourt_modules.loans.models import Loan, LoanStatus

        return Loan(
            id=self.id,
            loan_number=self.loan_number,
            employee_id=self.employee_id,
            principal=self.principal,
            interest_rate=self.interest_rate,
            interest_amount=self.interest_amount,
            total_repayable=self.total_repayable,
            installment_amount=self.installment_amount,
            duration_months=self.duration_months,
            start_date=self.start_date,
            end_date=self.end_date,
            remaining_amount=self.remaining_amount,
            status=LoanStatus(self.status),
            purpose=self.purpose,
            approved_by_id=self.approved_by_id,
            approval_date=self.approval_date,
            rejection_reason=self.rejection_reason,
            installments=tuple(i.to_dto() for i in self.installments),
        )

    def __repr__(self) -> str:
        return (
            f"<LoanModel {self.loan_number} status={self.status} "
            f"remaining={self.remaining_amount}>"
        )


class LoanInstallmentModel(TrackedBase):
    """ORM model for ``LoanInstallment``."""

    __tablename__ = "loans_installments"

    __table_args__ = (
        UniqueConstraint(
            "loan_id", "installment_number", name="uq_loans_installments_number",
        ),
        Index("idx_loans_installments_payroll_id", "payroll_id"),
    )

    loan_id: Mapped[UUID] = mapped_column(ForeignKey("loans_loans.id"), nullable=False)
    installment_number: Mapped[int] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    paid_date: Mapped[date | None] = mapped_column(nullable=True)
    payroll_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_payrolls.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    loan: Mapped["LoanModel"] = relationship(back_populates="installments")

    def to_dto(self):
        from forecourt_modules.loans.models import InstallmentStatus, LoanInstallment

        return LoanInstallment(
            id=self.id,
            loan_id=self.loan_id,
            installment_number=self.installment_number,
            due_date=self.due_date,
            amount=self.amount,
            remaining_balance=self.remaining_balance,
            status=InstallmentStatus(self.status),
            paid_date=self.paid_date,
            payroll_id=self.payroll_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<LoanInstallmentModel #{self.installment_number} "
            f"amount={self.amount} status={self.status}>"
        )

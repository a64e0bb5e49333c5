"""
Sales ORM Models (``forecourt_modules.sales.orm``).

Responsibility
--------------
SQLAlchemy persistence for fuel sales.  ``invoice_id`` links a credit
sale to the invoice that billed it; the invoicing service sets it in the
same transaction that creates the invoice.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from forecourt_kernel.db.base import TrackedBase


class SaleModel(TrackedBase):
    """
    ORM model for ``Sale``.

    Table: ``sales_fuel_sales``

    Guarantees:
        - sale_number is unique.
        - invoice_id FK to ar_invoices.id, NULL until invoiced.
    """

    __tablename__ = "sales_fuel_sales"

    __table_args__ = (
        UniqueConstraint("sale_number", name="uq_sales_fuel_sales_sale_number"),
        CheckConstraint("quantity > 0", name="ck_sales_fuel_sales_positive_quantity"),
        Index("idx_sales_fuel_sales_customer_date", "customer_id", "sale_date"),
        Index("idx_sales_fuel_sales_invoice_id", "invoice_id"),
    )

    sale_number: Mapped[str] = mapped_column(String(50), nullable=False)
    sale_date: Mapped[date] = mapped_column(nullable=False)
    station_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    fuel_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=True,
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=True,
    )

    def to_dto(self):
        from forecourt_modules.sales.models import FuelType, Sale, SalePaymentMethod

        return Sale(
            id=self.id,
            sale_number=self.sale_number,
            sale_date=self.sale_date,
            fuel_type=FuelType(self.fuel_type),
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_amount=self.total_amount,
            payment_method=SalePaymentMethod(self.payment_method),
            station_code=self.station_code,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "SaleModel":
        return cls(
            id=dto.id,
            sale_number=dto.sale_number,
            sale_date=dto.sale_date,
            station_code=dto.station_code,
            fuel_type=dto.fuel_type.value,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            total_amount=dto.total_amount,
            payment_method=dto.payment_method.value,
            customer_id=dto.customer_id,
            invoice_id=dto.invoice_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<SaleModel {self.sale_number} {self.fuel_type} "
            f"amount={self.total_amount}>"
        )

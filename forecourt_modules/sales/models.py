"""
Sales Domain Models (``forecourt_modules.sales.models``).

Responsibility
--------------
Frozen dataclass value objects for recorded fuel sales.  Sales paid on
credit are the source rows that ``InvoiceService.generate_from_sales``
aggregates into a customer invoice.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``invoice_id`` is None until the sale has been billed.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class FuelType(str, Enum):
    PETROL_92 = "Petrol 92"
    PETROL_95 = "Petrol 95"
    AUTO_DIESEL = "Auto Diesel"
    SUPER_DIESEL = "Super Diesel"
    KEROSENE = "Kerosene"


class SalePaymentMethod(str, Enum):
    """How the forecourt was paid for a sale."""
    CASH = "Cash"
    BANK_CARD = "BankCard"
    BANK_TRANSFER = "BankTransfer"
    CREDIT = "Credit"
    OTHER = "Other"


@dataclass(frozen=True)
class Sale:
    """One recorded fuel sale."""
    id: UUID
    sale_number: str
    sale_date: date
    fuel_type: FuelType
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    payment_method: SalePaymentMethod
    station_code: str | None = None
    customer_id: UUID | None = None
    invoice_id: UUID | None = None

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None

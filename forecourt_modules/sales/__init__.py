"""
forecourt_modules.sales
=======================

Recorded fuel sales.  Credit sales feed invoice generation in
``forecourt_modules.ar``.
"""

from forecourt_modules.sales.models import FuelType, Sale, SalePaymentMethod

__all__ = ["FuelType", "Sale", "SalePaymentMethod"]

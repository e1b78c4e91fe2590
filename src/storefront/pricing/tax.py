"""Tax rate contract and the flat-rate implementation the store ships with."""

from abc import ABC, abstractmethod
from decimal import Decimal

from storefront.config import get_settings
from storefront.pricing.money import ZERO, to_decimal


class TaxCalculator(ABC):
    """Supplies the tax rate applied to the discounted subtotal of an order."""

    @abstractmethod
    def rate_for(self, destination: dict | None) -> Decimal:
        """Rate as a fraction, e.g. ``Decimal("0.08")`` for 8%."""


class FlatRateTax(TaxCalculator):
    """One rate everywhere. Defaults to ``STOREFRONT_DEFAULT_TAX_RATE``."""

    def __init__(self, rate=None):
        self.rate = to_decimal(rate) if rate is not None else get_settings().default_tax_rate
        if self.rate < ZERO:
            raise ValueError("Tax rate cannot be negative")

    def rate_for(self, destination: dict | None) -> Decimal:
        return self.rate

"""Shipping calculator contract.

Checkout asks the calculator for a quote and never talks to a carrier itself.
Implementations raise ``ShippingError`` for methods they cannot quote.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ShippingMethod:
    id: str
    name: str
    description: str
    rate: Decimal
    estimated_days: int


class ShippingCalculator(ABC):
    @abstractmethod
    def calculate_shipping(self, cart_lines, destination: dict | None, method: str, now=None) -> Decimal:
        """Shipping cost of ``cart_lines`` sent to ``destination`` with ``method``.

        ``now`` is the pricing instant of the checkout, so sale prices are read
        the same way the pricing engine reads them.
        """

    @abstractmethod
    def get_available_methods(self, destination: dict | None) -> list[ShippingMethod]:
        """Methods a customer may pick for ``destination``."""

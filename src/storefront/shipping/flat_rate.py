"""Flat-rate shipping: one price per method, free above a subtotal threshold."""

from decimal import Decimal

import structlog

from storefront.config import get_settings
from storefront.errors import ShippingError
from storefront.pricing.engine import live_subtotal
from storefront.pricing.money import ZERO, quantize
from storefront.shipping.port import ShippingCalculator, ShippingMethod

logger = structlog.get_logger(__name__)


def default_methods() -> list[ShippingMethod]:
    settings = get_settings()
    return [
        ShippingMethod(
            id="standard",
            name="Standard Shipping",
            description="5-7 business days",
            rate=settings.standard_shipping_rate,
            estimated_days=7,
        ),
        ShippingMethod(
            id="expedited",
            name="Expedited Shipping",
            description="2-3 business days",
            rate=settings.expedited_shipping_rate,
            estimated_days=3,
        ),
    ]


class FlatRateShipping(ShippingCalculator):
    """Same rates for every destination.

    A live subtotal at or above ``free_shipping_threshold`` ships free; pass
    ``free_shipping_threshold=None`` to always charge.
    """

    def __init__(self, methods=None, free_shipping_threshold=...):
        self.methods = {m.id: m for m in (methods or default_methods())}
        if free_shipping_threshold is ...:
            free_shipping_threshold = get_settings().free_shipping_threshold
        self.free_shipping_threshold = free_shipping_threshold

    def calculate_shipping(self, cart_lines, destination, method="standard", now=None) -> Decimal:
        shipping_method = self.methods.get(method)
        if shipping_method is None:
            raise ShippingError(f"Unknown shipping method: {method}", method=method)

        if self.free_shipping_threshold is not None:
            subtotal = live_subtotal(cart_lines, now)
            if subtotal >= self.free_shipping_threshold:
                logger.debug("Free shipping applied", method=method, subtotal=str(subtotal))
                return quantize(ZERO)

        return quantize(shipping_method.rate)

    def get_available_methods(self, destination) -> list[ShippingMethod]:
        return list(self.methods.values())

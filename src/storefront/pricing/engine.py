"""Pricing engine: live unit prices, coupon discount, shipping and tax into order totals.

All arithmetic is exact ``Decimal``; every figure is rounded half-even to the
currency's minor unit as soon as it is produced. The engine never corrects a
figure after the fact: totals that disagree with each other raise
``PricingInvariantViolation``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import structlog

from storefront.catalogue.reader import CatalogueEntry
from storefront.coupon.coupon import DiscountType
from storefront.errors import PricingInvariantViolation
from storefront.pricing.money import HUNDRED, ZERO, quantize, to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PricingLine:
    """One cart line joined with the live catalogue data it will be priced from."""

    entry: CatalogueEntry
    quantity: int

    @property
    def product_id(self) -> str:
        return self.entry.product_id

    @property
    def variant_id(self) -> str | None:
        return self.entry.variant_id


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    variant_id: str | None
    sku: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_total: Decimal
    shipping_total: Decimal
    tax_total: Decimal
    grand_total: Decimal
    lines: tuple[PricedLine, ...] = ()

    @classmethod
    def from_line_items(cls, line_items, discount_total, shipping_total, tax_total) -> "OrderTotals":
        """Rebuild totals from persisted line-item snapshots and stored adjustments.

        Every stored ``line_total`` must equal ``unit_price x quantity``; the
        rebuilt grand total is what the order should have stored.
        """
        lines = []
        for item in line_items:
            unit_price = to_decimal(item.unit_price)
            expected = line_total(unit_price, item.quantity)
            stored = to_decimal(item.line_total)
            if stored != expected:
                raise PricingInvariantViolation(
                    f"Line total of {item.sku} disagrees with its unit price and quantity",
                    sku=item.sku,
                    line_total=stored,
                    expected=expected,
                )
            lines.append(
                PricedLine(
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    sku=item.sku,
                    name=item.name,
                    unit_price=unit_price,
                    quantity=item.quantity,
                    line_total=stored,
                )
            )

        subtotal = quantize(sum((line.line_total for line in lines), ZERO))
        discount_total = quantize(discount_total)
        shipping_total = quantize(shipping_total)
        tax_total = quantize(tax_total)
        totals = cls(
            subtotal=subtotal,
            discount_total=discount_total,
            shipping_total=shipping_total,
            tax_total=tax_total,
            grand_total=subtotal - discount_total + shipping_total + tax_total,
            lines=tuple(lines),
        )
        verify_totals(totals)
        return totals


def line_total(unit_price, quantity) -> Decimal:
    return quantize(to_decimal(unit_price) * quantity)


def resolve_unit_price(entry: CatalogueEntry, now: datetime) -> Decimal:
    """Sale price while its window is open, the regular price otherwise."""
    return quantize(entry.effective_price(now))


def live_subtotal(lines, now: datetime | None = None) -> Decimal:
    now = now or datetime.now(UTC)
    return quantize(sum((line_total(resolve_unit_price(line.entry, now), line.quantity) for line in lines), ZERO))


def verify_totals(totals: OrderTotals) -> None:
    """Raise ``PricingInvariantViolation`` unless the totals are internally consistent."""
    figures = {
        "subtotal": totals.subtotal,
        "discount_total": totals.discount_total,
        "shipping_total": totals.shipping_total,
        "tax_total": totals.tax_total,
        "grand_total": totals.grand_total,
    }

    negative = {name: value for name, value in figures.items() if value < ZERO}
    if negative:
        raise PricingInvariantViolation(f"Negative order totals: {', '.join(negative)}", **figures)

    if totals.discount_total > totals.subtotal:
        raise PricingInvariantViolation("Discount exceeds subtotal", **figures)

    if totals.lines:
        lines_sum = quantize(sum((line.line_total for line in totals.lines), ZERO))
        if lines_sum != totals.subtotal:
            raise PricingInvariantViolation("Subtotal disagrees with line totals", lines_sum=lines_sum, **figures)

    expected = totals.subtotal - totals.discount_total + totals.shipping_total + totals.tax_total
    if expected != totals.grand_total:
        raise PricingInvariantViolation("Grand total disagrees with its components", expected=expected, **figures)


class PricingEngine:
    def price_lines(self, lines, now: datetime) -> list[PricedLine]:
        priced = []
        for line in lines:
            unit_price = resolve_unit_price(line.entry, now)
            priced.append(
                PricedLine(
                    product_id=line.entry.product_id,
                    variant_id=line.entry.variant_id,
                    sku=line.entry.sku,
                    name=line.entry.name,
                    unit_price=unit_price,
                    quantity=line.quantity,
                    line_total=line_total(unit_price, line.quantity),
                )
            )
        return priced

    def discount(self, priced_lines, subtotal: Decimal, application) -> Decimal:
        """Discount granted by a validated coupon application, never more than the subtotal."""
        if application is None:
            return ZERO

        if application.eligible_product_ids is None:
            base = subtotal
        else:
            base = quantize(
                sum(
                    (line.line_total for line in priced_lines if line.product_id in application.eligible_product_ids),
                    ZERO,
                )
            )

        value = to_decimal(application.discount_value)
        if DiscountType(application.discount_type) == DiscountType.PERCENTAGE:
            amount = quantize(base * value / HUNDRED)
            if application.max_discount is not None:
                amount = min(amount, quantize(application.max_discount))
        else:
            amount = min(quantize(value), base)

        return min(amount, subtotal)

    def tax(self, subtotal: Decimal, discount_total: Decimal, tax_rate) -> Decimal:
        return quantize((subtotal - discount_total) * to_decimal(tax_rate))

    def price(self, lines, application=None, shipping_total=ZERO, tax_rate=ZERO, now=None) -> OrderTotals:
        now = now or datetime.now(UTC)

        priced_lines = self.price_lines(lines, now)
        subtotal = quantize(sum((line.line_total for line in priced_lines), ZERO))
        discount_total = self.discount(priced_lines, subtotal, application)
        shipping_total = quantize(shipping_total)
        tax_total = self.tax(subtotal, discount_total, tax_rate)

        totals = OrderTotals(
            subtotal=subtotal,
            discount_total=discount_total,
            shipping_total=shipping_total,
            tax_total=tax_total,
            grand_total=subtotal - discount_total + shipping_total + tax_total,
            lines=tuple(priced_lines),
        )
        verify_totals(totals)

        logger.debug(
            "Order priced",
            subtotal=str(subtotal),
            discount_total=str(discount_total),
            shipping_total=str(shipping_total),
            tax_total=str(tax_total),
            grand_total=str(totals.grand_total),
        )
        return totals

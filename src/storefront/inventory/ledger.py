"""Stock ledger: all-or-nothing stock reservation across the lines of a checkout.

Every line is checked against live stock before any line is decremented, and
all decrements are written through the current unit of work, so a failed
checkout never leaves a partially decremented set of products behind.
Concurrent writers are serialized by the Product aggregate's version: a stale
write raises ``ExpectedVersionError`` and the enclosing operation is retried
(see ``storefront.utils.retry``).
"""

from collections import OrderedDict
from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.errors import InsufficientStock, NotFound

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    variant_id: str | None
    quantity: int


@dataclass(frozen=True)
class ReservationToken:
    """Proof of a successful reservation; hand it back to ``release`` to undo it."""

    reservation_id: str
    lines: tuple[StockLine, ...]


def merge_lines(lines) -> list[StockLine]:
    """Sum quantities of lines that draw on the same product/variant, keeping first-seen order."""
    merged: OrderedDict[tuple[str, str | None], int] = OrderedDict()
    for line in lines:
        key = (str(line.product_id), str(line.variant_id) if line.variant_id else None)
        merged[key] = merged.get(key, 0) + line.quantity
    return [StockLine(product_id=p, variant_id=v, quantity=q) for (p, v), q in merged.items()]


class StockLedger:
    def _load_products(self, lines) -> dict[str, Product]:
        repo = current_domain.repository_for(Product)
        products = {}
        for line in lines:
            if line.product_id in products:
                continue
            try:
                products[line.product_id] = repo.get(line.product_id)
            except ObjectNotFoundError:
                raise NotFound("Product", line.product_id) from None
        return products

    def reserve(self, lines) -> ReservationToken:
        merged = merge_lines(lines)
        products = self._load_products(merged)

        for line in merged:
            product = products[line.product_id]
            if not product.can_supply(line.variant_id, line.quantity):
                holder = product.stock_holder(line.variant_id)
                logger.info(
                    "Stock reservation refused",
                    sku=holder.sku,
                    requested=line.quantity,
                    available=holder.stock_quantity,
                )
                raise InsufficientStock(holder.sku, line.quantity, max(holder.stock_quantity, 0))

        for line in merged:
            products[line.product_id].decrement_stock(line.variant_id, line.quantity)

        repo = current_domain.repository_for(Product)
        for product in products.values():
            repo.add(product)

        token = ReservationToken(reservation_id=str(uuid4()), lines=tuple(merged))
        logger.debug("Stock reserved", reservation_id=token.reservation_id, lines=len(merged))
        return token

    def release(self, token: ReservationToken) -> None:
        products = self._load_products(token.lines)
        for line in token.lines:
            products[line.product_id].restore_stock(line.variant_id, line.quantity)

        repo = current_domain.repository_for(Product)
        for product in products.values():
            repo.add(product)

        logger.debug("Stock released", reservation_id=token.reservation_id, lines=len(token.lines))

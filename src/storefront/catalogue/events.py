"""Domain events for stock movements on the Product aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class StockReserved:
    """Stock was decremented for a checkout."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    reserved_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockReleased:
    """Previously reserved stock was put back (rollback, cancellation or refund)."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    released_at = DateTime(required=True)


@storefront.event(part_of="Product")
class BackorderPlaced:
    """A reservation drove stock below zero on an item whose policy asks for a notification."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    quantity = Integer(required=True)
    stock_quantity = Integer(required=True)
    placed_at = DateTime(required=True)

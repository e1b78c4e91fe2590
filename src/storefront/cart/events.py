"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartItemAdded:
    """A product was added to the cart, or its quantity was topped up."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    unit_price_snapshot = String()


@storefront.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCouponApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@storefront.event(part_of="Cart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@storefront.event(part_of="Cart")
class CartConverted:
    """A cart was turned into an order and archived."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier()
    item_count = Integer(required=True)


@storefront.event(part_of="Cart")
class CartAbandoned:
    __version__ = 1

    cart_id = Identifier(required=True)
    abandoned_at = DateTime(required=True)

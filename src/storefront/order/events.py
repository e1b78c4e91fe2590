"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderCreated:
    """A cart was assembled into an order. Raised once, when the order is first persisted."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    cart_id = Identifier()
    status = String(required=True)
    item_count = Integer(required=True)
    subtotal = String(required=True)
    discount_total = String(required=True)
    shipping_total = String(required=True)
    tax_total = String(required=True)
    grand_total = String(required=True)
    currency = String(required=True)
    coupon_code = String()
    referral_code = String()
    created_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    old_status = String(required=True)
    new_status = String(required=True)
    actor = String()
    reason = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentCaptured:
    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = String(required=True)
    captured_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String()
    amount = String(required=True)
    reason = String()
    refunded_at = DateTime(required=True)

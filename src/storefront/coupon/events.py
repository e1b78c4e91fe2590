"""Domain events for the Coupon aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Coupon")
class CouponCreated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = String(required=True)


@storefront.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon was consumed by a successfully created order."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier()
    usage_count = Integer(required=True)
    redeemed_at = DateTime(required=True)

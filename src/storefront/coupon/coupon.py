"""Coupon aggregate with its redemption history.

Codes are stored upper-cased and matched case-insensitively. The usage counter
only moves forward, and only when an order that used the coupon is created.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from storefront.config import get_settings
from storefront.coupon.events import CouponCreated, CouponRedeemed
from storefront.domain import storefront
from storefront.errors import CouponAlreadyUsed, CouponExhausted
from storefront.pricing.money import HUNDRED, ZERO, to_decimal, to_str


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code) -> str:
    return (code or "").strip().upper()


@storefront.entity(part_of="Coupon")
class CouponUsage:
    customer_id = Identifier()  # Empty for guest checkouts
    order_id = Identifier(required=True)
    used_at = DateTime(required=True)


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(choices=DiscountType, required=True)
    discount_value = String(required=True, max_length=20)
    max_discount = String(max_length=20)
    minimum_order_amount = String(max_length=20)
    usage_limit = Integer(min_value=1)
    usage_limit_per_customer = Integer(min_value=1, default=1)
    usage_count = Integer(default=0, min_value=0)
    valid_from = DateTime(required=True)
    valid_until = DateTime()
    included_product_ids = Text()  # JSON array
    excluded_product_ids = Text()  # JSON array
    usages = HasMany(CouponUsage)
    created_at = DateTime()

    @invariant.post
    def discount_value_must_be_in_range(self):
        value = to_decimal(self.discount_value)
        if value <= ZERO:
            raise ValidationError({"discount_value": ["Discount value must be positive"]})
        if self.discount_type == DiscountType.PERCENTAGE.value and value > HUNDRED:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_until and self.valid_from and self.valid_until <= self.valid_from:
            raise ValidationError({"valid_until": ["Coupon must expire after it becomes valid"]})

    @invariant.post
    def usage_cannot_exceed_limit(self):
        if self.usage_limit is not None and self.usage_count > self.usage_limit:
            raise ValidationError({"usage_count": ["Coupon used more often than its limit allows"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        discount_type,
        discount_value,
        valid_from=None,
        valid_until=None,
        max_discount=None,
        minimum_order_amount=None,
        usage_limit=None,
        usage_limit_per_customer=None,
        included_product_ids=None,
        excluded_product_ids=None,
        description=None,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            discount_value=to_str(discount_value),
            max_discount=to_str(max_discount) if max_discount is not None else None,
            minimum_order_amount=to_str(minimum_order_amount) if minimum_order_amount is not None else None,
            usage_limit=usage_limit,
            usage_limit_per_customer=(
                usage_limit_per_customer
                if usage_limit_per_customer is not None
                else get_settings().coupon_usage_limit_per_customer
            ),
            usage_count=0,
            valid_from=valid_from or now,
            valid_until=valid_until,
            included_product_ids=json.dumps([str(p) for p in included_product_ids or []]),
            excluded_product_ids=json.dumps([str(p) for p in excluded_product_ids or []]),
            created_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def included(self) -> list[str]:
        return json.loads(self.included_product_ids) if self.included_product_ids else []

    @property
    def excluded(self) -> list[str]:
        return json.loads(self.excluded_product_ids) if self.excluded_product_ids else []

    @property
    def is_restricted(self) -> bool:
        return bool(self.included or self.excluded)

    def applies_to(self, product_id) -> bool:
        product_id = str(product_id)
        if self.included and product_id not in self.included:
            return False
        return product_id not in self.excluded

    def not_yet_active(self, now) -> bool:
        return now < self.valid_from

    def has_expired(self, now) -> bool:
        return self.valid_until is not None and now > self.valid_until

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def times_used_by(self, customer_id) -> int:
        if not customer_id:
            return 0
        return sum(1 for usage in self.usages if str(usage.customer_id) == str(customer_id))

    def used_up_by(self, customer_id) -> bool:
        """Whether ``customer_id`` reached the per-customer limit. Guests are never limited."""
        if not customer_id or not self.usage_limit_per_customer:
            return False
        return self.times_used_by(customer_id) >= self.usage_limit_per_customer

    def usage_stats(self, recent=10) -> dict:
        usages = sorted(self.usages, key=lambda u: u.used_at, reverse=True)
        return {
            "total_uses": len(usages),
            "unique_customers": len({str(u.customer_id) for u in usages if u.customer_id}),
            "recent_uses": [
                {"order_id": str(u.order_id), "customer_id": u.customer_id, "used_at": u.used_at} for u in usages[:recent]
            ],
        }

    # -------------------------------------------------------------------
    # Redemption
    # -------------------------------------------------------------------
    def redeem(self, order_id, customer_id=None):
        """Record one use of the coupon by ``order_id``.

        Limits are checked again here: the validator's answer may be stale by
        the time the order is persisted.
        """
        if self.is_exhausted():
            raise CouponExhausted(self.code, self.usage_limit)
        if self.used_up_by(customer_id):
            raise CouponAlreadyUsed(self.code, str(customer_id))

        now = datetime.now(UTC)
        with atomic_change(self):
            self.usage_count += 1
            self.add_usages(CouponUsage(customer_id=customer_id, order_id=order_id, used_at=now))

        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                customer_id=str(customer_id) if customer_id else None,
                usage_count=self.usage_count,
                redeemed_at=now,
            )
        )

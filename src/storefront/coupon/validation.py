"""Coupon validation at checkout. Reads only; redemption happens when the order is persisted."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon, normalize_code
from storefront.errors import (
    CouponAlreadyUsed,
    CouponExhausted,
    CouponExpired,
    CouponNotApplicable,
    CouponNotFound,
    MinimumNotMet,
)
from storefront.pricing.engine import live_subtotal
from storefront.pricing.money import to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponApplication:
    """A coupon that passed validation, reduced to what pricing needs."""

    coupon_id: str
    code: str
    discount_type: str
    discount_value: Decimal
    max_discount: Decimal | None = None
    # None means every line is eligible
    eligible_product_ids: frozenset[str] | None = None


class CouponValidator:
    def validate(self, coupon_code, lines, customer_id=None, now=None) -> CouponApplication:
        """Check ``coupon_code`` against its window, usage limits, minimum spend and product rules.

        ``lines`` are pricing lines carrying live catalogue data; the minimum
        spend is compared with their live subtotal, never with cart snapshots.
        """
        now = now or datetime.now(UTC)
        code = normalize_code(coupon_code)

        coupon = current_domain.repository_for(Coupon).find_by_code(code)
        if coupon is None:
            raise CouponNotFound(code)

        if coupon.not_yet_active(now):
            raise CouponExpired(code, f"Coupon {code} is not active yet")
        if coupon.has_expired(now):
            raise CouponExpired(code)

        if coupon.is_exhausted():
            raise CouponExhausted(code, coupon.usage_limit)
        if coupon.used_up_by(customer_id):
            raise CouponAlreadyUsed(code, str(customer_id))

        if coupon.minimum_order_amount:
            minimum = to_decimal(coupon.minimum_order_amount)
            subtotal = live_subtotal(lines, now)
            if subtotal < minimum:
                raise MinimumNotMet(code, minimum, subtotal)

        eligible = None
        if coupon.is_restricted:
            eligible = frozenset(line.product_id for line in lines if coupon.applies_to(line.product_id))
            if not eligible:
                raise CouponNotApplicable(code)

        logger.debug("Coupon validated", coupon_code=code, customer_id=customer_id)

        return CouponApplication(
            coupon_id=str(coupon.id),
            code=code,
            discount_type=coupon.discount_type,
            discount_value=to_decimal(coupon.discount_value),
            max_discount=to_decimal(coupon.max_discount) if coupon.max_discount else None,
            eligible_product_ids=eligible,
        )

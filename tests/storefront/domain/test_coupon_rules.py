"""Tests for Coupon aggregate rules and redemption."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from storefront.coupon.coupon import Coupon, DiscountType
from storefront.coupon.events import CouponRedeemed
from storefront.errors import CouponAlreadyUsed, CouponExhausted


def _coupon(**overrides):
    defaults = {
        "code": "save10",
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": "10",
    }
    defaults.update(overrides)
    return Coupon.create(**defaults)


class TestCouponCreation:
    def test_code_is_normalized(self):
        assert _coupon(code="  save10 ").code == "SAVE10"

    def test_values_are_decimal_strings(self):
        coupon = _coupon(discount_type=DiscountType.FIXED.value, discount_value="5", minimum_order_amount="50")
        assert coupon.discount_value == "5.00"
        assert coupon.minimum_order_amount == "50.00"

    def test_percentage_cannot_exceed_100(self):
        with pytest.raises(ValidationError) as exc:
            _coupon(discount_value="120")
        assert "discount_value" in exc.value.messages

    def test_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            _coupon(discount_type=DiscountType.FIXED.value, discount_value="0")

    def test_window_must_be_ordered(self):
        now = datetime.now(UTC)
        with pytest.raises(ValidationError):
            _coupon(valid_from=now, valid_until=now - timedelta(days=1))


class TestCouponQueries:
    def test_validity_window(self):
        now = datetime.now(UTC)
        coupon = _coupon(valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=2))

        assert coupon.not_yet_active(now)
        assert not coupon.has_expired(now)
        assert coupon.has_expired(now + timedelta(days=3))

    def test_product_restrictions(self):
        coupon = _coupon(included_product_ids=["prod-1", "prod-2"], excluded_product_ids=["prod-2"])

        assert coupon.is_restricted
        assert coupon.applies_to("prod-1")
        assert not coupon.applies_to("prod-2")
        assert not coupon.applies_to("prod-3")

    def test_unrestricted_coupon_applies_everywhere(self):
        coupon = _coupon()
        assert not coupon.is_restricted
        assert coupon.applies_to("anything")


class TestCouponRedemption:
    def test_redeem_counts_usage_and_raises_event(self):
        coupon = _coupon()
        coupon.redeem(order_id="order-1", customer_id="cust-1")

        assert coupon.usage_count == 1
        assert coupon.times_used_by("cust-1") == 1
        redeemed = [e for e in coupon._events if isinstance(e, CouponRedeemed)]
        assert redeemed[0].order_id == "order-1"

    def test_global_limit(self):
        coupon = _coupon(usage_limit=1, usage_limit_per_customer=5)
        coupon.redeem(order_id="order-1", customer_id="cust-1")

        assert coupon.is_exhausted()
        with pytest.raises(CouponExhausted):
            coupon.redeem(order_id="order-2", customer_id="cust-2")

    def test_per_customer_limit(self):
        coupon = _coupon()
        coupon.redeem(order_id="order-1", customer_id="cust-1")

        with pytest.raises(CouponAlreadyUsed):
            coupon.redeem(order_id="order-2", customer_id="cust-1")

    def test_guests_are_not_limited_per_customer(self):
        coupon = _coupon()
        coupon.redeem(order_id="order-1")
        coupon.redeem(order_id="order-2")
        assert coupon.usage_count == 2

    def test_usage_stats(self):
        coupon = _coupon(usage_limit_per_customer=5)
        coupon.redeem(order_id="order-1", customer_id="cust-1")
        coupon.redeem(order_id="order-2", customer_id="cust-1")
        coupon.redeem(order_id="order-3", customer_id="cust-2")
        coupon.redeem(order_id="order-4")

        stats = coupon.usage_stats(recent=2)

        assert stats["total_uses"] == 4
        assert stats["unique_customers"] == 2
        assert len(stats["recent_uses"]) == 2

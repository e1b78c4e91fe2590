"""Tests for Cart aggregate behaviour."""

import pytest
from protean.exceptions import ValidationError
from storefront.cart.cart import Cart, CartStatus
from storefront.cart.events import CartConverted, CartCouponApplied, CartItemAdded


def _cart_with_item(quantity=1):
    cart = Cart.create(customer_id="cust-001")
    item = cart.add_item(product_id="prod-001", quantity=quantity, unit_price_snapshot="20.00")
    return cart, item


class TestCartCreation:
    def test_new_cart_is_active(self):
        cart = Cart.create(customer_id="cust-001")
        assert cart.status == CartStatus.ACTIVE.value
        assert cart.is_active

    def test_guest_cart(self):
        cart = Cart.create(session_id="sess-001")
        assert cart.customer_id is None
        assert cart.session_id == "sess-001"

    def test_referral_code_is_upper_cased(self):
        assert Cart.create(referral_code="friend10").referral_code == "FRIEND10"


class TestCartItems:
    def test_add_item(self):
        cart, item = _cart_with_item(2)
        assert len(cart.items) == 1
        assert item.quantity == 2
        assert any(isinstance(e, CartItemAdded) for e in cart._events)

    def test_same_product_merges_quantity(self):
        cart, _ = _cart_with_item(1)
        cart.add_item(product_id="prod-001", quantity=2, unit_price_snapshot="20.00")
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_different_variants_are_separate_lines(self):
        cart = Cart.create(customer_id="cust-001")
        cart.add_item(product_id="prod-001", variant_id="var-red", quantity=1)
        cart.add_item(product_id="prod-001", variant_id="var-blue", quantity=1)
        assert len(cart.items) == 2

    def test_quantity_must_be_positive(self):
        cart = Cart.create(customer_id="cust-001")
        with pytest.raises(ValidationError):
            cart.add_item(product_id="prod-001", quantity=0)

    def test_update_quantity(self):
        cart, item = _cart_with_item(1)
        cart.update_item_quantity(item.id, 4)
        assert cart.items[0].quantity == 4

    def test_update_unknown_item(self):
        cart, _ = _cart_with_item()
        with pytest.raises(ValidationError) as exc:
            cart.update_item_quantity("missing", 2)
        assert "item_id" in exc.value.messages

    def test_remove_item(self):
        cart, item = _cart_with_item()
        cart.remove_item(item.id)
        assert len(cart.items) == 0

    def test_display_subtotal_uses_snapshots(self):
        cart, _ = _cart_with_item(3)
        assert str(cart.subtotal) == "60.00"


class TestCartCoupon:
    def test_apply_coupon_normalizes_code(self):
        cart, _ = _cart_with_item()
        cart.apply_coupon("  save10 ")
        assert cart.coupon_code == "SAVE10"
        assert any(isinstance(e, CartCouponApplied) for e in cart._events)

    def test_blank_coupon_rejected(self):
        cart, _ = _cart_with_item()
        with pytest.raises(ValidationError):
            cart.apply_coupon("   ")

    def test_remove_coupon(self):
        cart, _ = _cart_with_item()
        cart.apply_coupon("SAVE10")
        cart.remove_coupon()
        assert cart.coupon_code is None

    def test_remove_coupon_when_none_applied(self):
        cart, _ = _cart_with_item()
        with pytest.raises(ValidationError):
            cart.remove_coupon()


class TestCartLifecycle:
    def test_convert_to_order(self):
        cart, _ = _cart_with_item()
        cart.convert_to_order("order-001")

        assert cart.status == CartStatus.CONVERTED.value
        assert cart.converted_order_id == "order-001"
        converted = [e for e in cart._events if isinstance(e, CartConverted)]
        assert converted[0].item_count == 1

    def test_empty_cart_cannot_convert(self):
        cart = Cart.create(customer_id="cust-001")
        with pytest.raises(ValidationError):
            cart.convert_to_order("order-001")

    def test_converted_cart_is_read_only(self):
        cart, _ = _cart_with_item()
        cart.convert_to_order("order-001")
        with pytest.raises(ValidationError):
            cart.add_item(product_id="prod-002", quantity=1)

    def test_abandon(self):
        cart, _ = _cart_with_item()
        cart.abandon()
        assert cart.status == CartStatus.ABANDONED.value

    def test_abandoned_cart_cannot_convert(self):
        cart, _ = _cart_with_item()
        cart.abandon()
        with pytest.raises(ValidationError):
            cart.convert_to_order("order-001")

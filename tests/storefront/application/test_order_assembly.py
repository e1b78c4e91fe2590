"""Application tests for converting a cart into an order."""

from decimal import Decimal

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ValidationError
from storefront.cart.cart import Cart, CartStatus
from storefront.catalogue.product import Product
from storefront.checkout.assembler import OrderAssembler
from storefront.coupon.coupon import Coupon
from storefront.errors import (
    CouponAlreadyUsed,
    EmptyCart,
    InsufficientStock,
    NotFound,
    ShippingError,
    TransactionConflict,
)
from storefront.inventory.ledger import StockLedger
from storefront.order.order import Order, OrderStatus
from storefront.shipping.flat_rate import FlatRateShipping


def _stock(product):
    return current_domain.repository_for(Product).get(str(product.id)).stock_quantity


def _all_orders():
    return current_domain.repository_for(Order)._dao.query.all().items


def _cart_status(cart):
    return current_domain.repository_for(Cart).get(str(cart.id)).status


class TestSuccessfulAssembly:
    def test_fixed_coupon_example(self, make_product, make_cart, make_coupon, quoted_assembler, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=10)
        make_coupon(code="SAVE5", discount_value="5.00")
        cart = make_cart([(product, 1)], coupon_code="SAVE5")

        order = quoted_assembler(shipping="3.00").create_order_from_cart(cart.id, checkout_attrs())

        assert order.subtotal == "20.00"
        assert order.discount_total == "5.00"
        assert order.shipping_total == "3.00"
        assert order.tax_total == "0.00"
        assert order.grand_total == "18.00"
        assert order.coupon_code == "SAVE5"

    def test_sale_price_line_total(self, make_product, make_cart, quoted_assembler, checkout_attrs):
        product = make_product(price="30.00", sale_price="24.99", stock_quantity=10)
        cart = make_cart([(product, 2)])

        order = quoted_assembler(shipping="0.00").create_order_from_cart(cart.id, checkout_attrs())

        assert order.line_items[0].unit_price == "24.99"
        assert order.line_items[0].line_total == "49.98"
        assert order.subtotal == "49.98"

    def test_shipping_quoted_at_pricing_instant(self, make_product, make_cart, checkout_attrs):
        seen = {}

        class RecordingShipping(FlatRateShipping):
            def calculate_shipping(self, cart_lines, destination, method="standard", now=None):
                seen["shipping"] = now
                return super().calculate_shipping(cart_lines, destination, method, now=now)

        class RecordingAssembler(OrderAssembler):
            def price(self, lines, application, attrs, now):
                seen["pricing"] = now
                return super().price(lines, application, attrs, now)

        product = make_product(price="20.00", stock_quantity=5)
        cart = make_cart([(product, 1)])

        RecordingAssembler(shipping_calculator=RecordingShipping()).create_order_from_cart(cart.id, checkout_attrs())

        assert seen["shipping"] is not None
        assert seen["shipping"] == seen["pricing"]

    def test_live_price_wins_over_cart_snapshot(self, make_product, make_cart, quoted_assembler, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=10)
        cart = make_cart([(product, 1)])

        product = current_domain.repository_for(Product).get(str(product.id))
        product.price = "25.00"
        current_domain.repository_for(Product).add(product)

        order = quoted_assembler().create_order_from_cart(cart.id, checkout_attrs())
        assert order.subtotal == "25.00"

    def test_side_effects_are_committed_together(self, make_product, make_cart, make_coupon, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=10)
        coupon = make_coupon(code="SAVE5")
        cart = make_cart([(product, 3)], coupon_code="SAVE5")

        order = OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

        assert _stock(product) == 7
        stored_cart = current_domain.repository_for(Cart).get(str(cart.id))
        assert stored_cart.status == CartStatus.CONVERTED.value
        assert stored_cart.converted_order_id == str(order.id)
        stored_coupon = current_domain.repository_for(Coupon).get(str(coupon.id))
        assert stored_coupon.usage_count == 1
        assert stored_coupon.usages[0].order_id == str(order.id)

    def test_status_depends_on_payment_method(self, make_product, make_cart, checkout_attrs):
        product = make_product(stock_quantity=10)

        draft = OrderAssembler().create_order_from_cart(make_cart([(product, 1)]).id, checkout_attrs())
        pending = OrderAssembler().create_order_from_cart(
            make_cart([(product, 1)]).id, checkout_attrs(payment_method="card")
        )

        assert draft.status == OrderStatus.DRAFT.value
        assert pending.status == OrderStatus.PENDING_PAYMENT.value
        assert pending.payment_method == "card"

    def test_flat_rate_shipping_by_default(self, make_product, make_cart, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=10)

        standard = OrderAssembler().create_order_from_cart(make_cart([(product, 1)]).id, checkout_attrs())
        free = OrderAssembler().create_order_from_cart(make_cart([(product, 4)]).id, checkout_attrs())

        assert standard.shipping_total == "9.99"
        assert standard.grand_total == "29.99"
        assert free.shipping_total == "0.00"

    def test_referral_code_is_carried_to_the_order(self, make_product, make_cart, checkout_attrs):
        product = make_product(stock_quantity=10)
        cart = make_cart([(product, 1)], referral_code="friend10")

        order = OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())
        assert order.referral_code == "FRIEND10"

    def test_persisted_order_round_trips_totals(self, make_product, make_cart, checkout_attrs):
        product = make_product(price="19.99", sale_price="17.49", stock_quantity=10)
        cart = make_cart([(product, 3)])

        order = OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())
        stored = current_domain.repository_for(Order).get(str(order.id))

        assert stored.totals().grand_total == Decimal(stored.grand_total)

    def test_variant_lines(self, make_product, make_cart, quoted_assembler, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=0)
        variant = product.add_variant(sku="SKU-001-XL", name="XL", price="22.00", stock_quantity=2)
        current_domain.repository_for(Product).add(product)
        cart = make_cart([(product, variant, 2)])

        order = quoted_assembler().create_order_from_cart(cart.id, checkout_attrs())

        assert order.line_items[0].sku == "SKU-001-XL"
        assert order.line_items[0].line_total == "44.00"
        stored = current_domain.repository_for(Product).get(str(product.id))
        assert stored.stock_holder(variant.id).stock_quantity == 0


class TestRejectedAssembly:
    def test_unknown_cart(self, checkout_attrs):
        with pytest.raises(NotFound):
            OrderAssembler().create_order_from_cart("missing-cart", checkout_attrs())

    def test_empty_cart(self, make_cart, checkout_attrs):
        cart = make_cart([])
        with pytest.raises(EmptyCart):
            OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

    def test_converted_cart_cannot_be_checked_out_twice(self, make_product, make_cart, checkout_attrs):
        cart = make_cart([(make_product(stock_quantity=10), 1)])
        OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

        with pytest.raises(ValidationError):
            OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())
        assert len(_all_orders()) == 1

    def test_invalid_attributes_fail_before_anything_is_read(self, checkout_attrs):
        with pytest.raises(ValidationError) as exc:
            OrderAssembler().create_order_from_cart("missing-cart", checkout_attrs(billing_address=None))
        assert "billing_address" in exc.value.messages

    def test_insufficient_stock_leaves_no_trace(self, make_product, make_cart, make_coupon, checkout_attrs):
        plenty = make_product(sku="SKU-1", stock_quantity=10)
        scarce = make_product(sku="SKU-2", stock_quantity=1)
        coupon = make_coupon(code="SAVE5")
        cart = make_cart([(plenty, 2), (scarce, 2)], coupon_code="SAVE5")

        with pytest.raises(InsufficientStock):
            OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

        assert _stock(plenty) == 10
        assert _stock(scarce) == 1
        assert _all_orders() == []
        assert _cart_status(cart) == CartStatus.ACTIVE.value
        assert current_domain.repository_for(Coupon).get(str(coupon.id)).usage_count == 0

    def test_no_oversell_across_checkouts(self, make_product, make_cart, checkout_attrs):
        product = make_product(stock_quantity=5)
        carts = [make_cart([(product, 2)], customer_id=f"cust-{n}") for n in range(4)]

        outcomes = []
        for cart in carts:
            try:
                OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())
                outcomes.append("ok")
            except InsufficientStock:
                outcomes.append("short")

        assert outcomes == ["ok", "ok", "short", "short"]
        assert _stock(product) == 1
        assert sum(item.quantity for order in _all_orders() for item in order.line_items) == 4


class TestCouponSingleUse:
    def test_second_order_by_same_customer_is_refused(self, make_product, make_cart, make_coupon, checkout_attrs):
        product = make_product(stock_quantity=10)
        coupon = make_coupon(code="WELCOME")
        first = make_cart([(product, 1)], customer_id="cust-001", coupon_code="WELCOME")
        second = make_cart([(product, 1)], customer_id="cust-001", coupon_code="WELCOME")

        OrderAssembler().create_order_from_cart(first.id, checkout_attrs())
        with pytest.raises(CouponAlreadyUsed):
            OrderAssembler().create_order_from_cart(second.id, checkout_attrs())

        assert current_domain.repository_for(Coupon).get(str(coupon.id)).usage_count == 1
        assert _stock(product) == 9
        assert _cart_status(second) == CartStatus.ACTIVE.value

    def test_coupon_in_attributes_overrides_cart(self, make_product, make_cart, make_coupon, checkout_attrs):
        product = make_product(price="20.00", stock_quantity=10)
        make_coupon(code="SAVE5", discount_value="5.00")
        make_coupon(code="SAVE2", discount_value="2.00")
        cart = make_cart([(product, 1)], coupon_code="SAVE5")

        order = OrderAssembler().create_order_from_cart(cart.id, checkout_attrs(coupon_code="save2"))
        assert order.discount_total == "2.00"


class TestAtomicity:
    def test_failure_while_persisting_restores_everything(
        self, make_product, make_cart, make_coupon, checkout_attrs
    ):
        class FailingAssembler(OrderAssembler):
            def persist(self, cart, attrs, totals, application):
                super().persist(cart, attrs, totals, application)
                raise RuntimeError("Database went away")

        product = make_product(stock_quantity=5)
        coupon = make_coupon(code="SAVE5")
        cart = make_cart([(product, 2)], coupon_code="SAVE5")

        with pytest.raises(RuntimeError):
            FailingAssembler().create_order_from_cart(cart.id, checkout_attrs())

        assert _stock(product) == 5
        assert _all_orders() == []
        assert _cart_status(cart) == CartStatus.ACTIVE.value
        assert current_domain.repository_for(Coupon).get(str(coupon.id)).usage_count == 0

    def test_failure_while_pricing_releases_reservation(self, make_product, make_cart, checkout_attrs):
        class BrokenCarrier(FlatRateShipping):
            def calculate_shipping(self, cart_lines, destination, method="standard", now=None):
                raise ShippingError("Carrier unavailable", method=method)

        product = make_product(stock_quantity=5)
        cart = make_cart([(product, 2)])

        with pytest.raises(ShippingError):
            OrderAssembler(shipping_calculator=BrokenCarrier()).create_order_from_cart(cart.id, checkout_attrs())

        assert _stock(product) == 5
        assert _cart_status(cart) == CartStatus.ACTIVE.value


class TestConflictRetries:
    def test_conflicting_write_is_retried(self, make_product, make_cart, checkout_attrs, monkeypatch):
        product = make_product(stock_quantity=5)
        cart = make_cart([(product, 1)])
        original_reserve = StockLedger.reserve
        attempts = []

        def flaky_reserve(self, lines):
            attempts.append(1)
            if len(attempts) == 1:
                raise ExpectedVersionError("Product was modified concurrently")
            return original_reserve(self, lines)

        monkeypatch.setattr(StockLedger, "reserve", flaky_reserve)

        order = OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

        assert len(attempts) == 2
        assert order.status == OrderStatus.DRAFT.value
        assert _stock(product) == 4

    def test_persistent_conflict_surfaces_transaction_conflict(
        self, make_product, make_cart, checkout_attrs, monkeypatch
    ):
        product = make_product(stock_quantity=5)
        cart = make_cart([(product, 1)])

        def always_stale(self, lines):
            raise ExpectedVersionError("Product was modified concurrently")

        monkeypatch.setattr(StockLedger, "reserve", always_stale)

        with pytest.raises(TransactionConflict) as exc:
            OrderAssembler().create_order_from_cart(cart.id, checkout_attrs())

        assert exc.value.attempts == 3
        assert _stock(product) == 5
        assert _cart_status(cart) == CartStatus.ACTIVE.value

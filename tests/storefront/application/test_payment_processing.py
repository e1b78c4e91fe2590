"""Application tests for capturing and refunding payments through the gateway."""

from decimal import Decimal

import pytest
from protean import current_domain
from storefront.catalogue.product import Product
from storefront.checkout.assembler import OrderAssembler
from storefront.errors import InvalidTransition, PaymentError
from storefront.order.order import OrderStatus
from storefront.order.payment import PaymentProcessor
from storefront.payments.gateway import get_gateway, set_gateway
from storefront.payments.gateway.fake_adapter import FakeGateway


@pytest.fixture
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture
def product(make_product):
    return make_product(price="20.00", stock_quantity=10)


@pytest.fixture
def order(product, make_cart, checkout_attrs):
    cart = make_cart([(product, 2)])
    return OrderAssembler().create_order_from_cart(cart.id, checkout_attrs(payment_method="card"))


def _stock(product):
    return current_domain.repository_for(Product).get(str(product.id)).stock_quantity


class TestCapture:
    def test_capture_marks_order_paid(self, gateway, order):
        paid = PaymentProcessor().capture_payment(order.id, {"token": "tok_visa"})

        assert paid.status == OrderStatus.PAID.value
        assert paid.payment_transaction_id.startswith("fake_txn_")
        assert [call["method"] for call in gateway.calls] == ["authorize", "capture"]
        assert gateway.calls[0]["amount"] == Decimal(order.grand_total)

    def test_declined_card_leaves_order_pending(self, gateway, order):
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")

        with pytest.raises(PaymentError) as exc:
            PaymentProcessor().capture_payment(order.id, {"token": "tok_declined"})

        assert exc.value.reason == "Insufficient funds"
        stored = current_domain.repository_for(type(order)).get(str(order.id))
        assert stored.status == OrderStatus.PENDING_PAYMENT.value

    def test_draft_orders_are_not_charged(self, gateway, product, make_cart, checkout_attrs):
        draft = OrderAssembler().create_order_from_cart(make_cart([(product, 1)]).id, checkout_attrs())

        with pytest.raises(InvalidTransition):
            PaymentProcessor().capture_payment(draft.id, {})
        assert gateway.calls == []

    def test_default_gateway_is_fake(self):
        assert isinstance(get_gateway(), FakeGateway)


class TestRefund:
    def test_partial_refund_keeps_order_paid(self, gateway, order, product):
        PaymentProcessor().capture_payment(order.id, {})

        refunded = PaymentProcessor().refund_payment(order.id, Decimal("5.00"), reason="Scratched box")

        assert refunded.status == OrderStatus.PAID.value
        assert refunded.refunded_total == "5.00"
        assert _stock(product) == 8
        assert gateway.calls[-1]["method"] == "refund"

    def test_full_refund_returns_stock(self, gateway, order, product):
        PaymentProcessor().capture_payment(order.id, {})

        refunded = PaymentProcessor().refund_payment(order.id, Decimal(order.grand_total), reason="Cancelled")

        assert refunded.status == OrderStatus.REFUNDED.value
        assert _stock(product) == 10

    def test_unpaid_order_cannot_be_refunded(self, gateway, order):
        with pytest.raises(PaymentError):
            PaymentProcessor().refund_payment(order.id, Decimal("5.00"))
        assert gateway.calls == []

    def test_gateway_refund_failure(self, gateway, order):
        PaymentProcessor().capture_payment(order.id, {})
        gateway.configure(should_succeed=False, failure_reason="Refund window closed")

        with pytest.raises(PaymentError):
            PaymentProcessor().refund_payment(order.id, Decimal("5.00"))

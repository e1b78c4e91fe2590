from decimal import Decimal

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    # Commission attribution must fire inside the test's unit of work
    storefront.config["event_processing"] = "sync"

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _reset_collaborators():
    yield

    from storefront.config import get_settings
    from storefront.payments.gateway import reset_gateway

    reset_gateway()
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture
def make_product():
    from storefront.catalogue.product import Product

    def _make(sku="SKU-001", price="20.00", stock_quantity=10, **kwargs):
        product = Product.create(
            sku=sku,
            name=kwargs.pop("name", f"Product {sku}"),
            price=Decimal(price),
            stock_quantity=stock_quantity,
            **kwargs,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def make_cart():
    from storefront.cart.cart import Cart

    def _make(lines=(), customer_id="cust-001", coupon_code=None, referral_code=None):
        """``lines`` is a sequence of ``(product, quantity)`` or ``(product, variant, quantity)``."""
        cart = Cart.create(customer_id=customer_id, referral_code=referral_code)
        for line in lines:
            if len(line) == 3:
                product, variant, quantity = line
                variant_id = str(variant.id)
            else:
                product, quantity = line
                variant_id = None
            cart.add_item(
                product_id=str(product.id),
                variant_id=variant_id,
                quantity=quantity,
                unit_price_snapshot=product.price,
            )
        if coupon_code:
            cart.apply_coupon(coupon_code)
        current_domain.repository_for(Cart).add(cart)
        return cart

    return _make


@pytest.fixture
def make_coupon():
    from storefront.coupon.coupon import Coupon, DiscountType

    def _make(code="SAVE5", discount_type=DiscountType.FIXED.value, discount_value="5.00", **kwargs):
        coupon = Coupon.create(code=code, discount_type=discount_type, discount_value=Decimal(discount_value), **kwargs)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make


@pytest.fixture
def address():
    return {
        "name": "Ada Lovelace",
        "line1": "1 Market St",
        "city": "San Francisco",
        "state": "CA",
        "postal_code": "94105",
        "country": "US",
    }


@pytest.fixture
def checkout_attrs(address):
    def _attrs(**overrides):
        attrs = {"billing_address": dict(address), "shipping_method": "standard"}
        attrs.update(overrides)
        return attrs

    return _attrs


@pytest.fixture
def quoted_assembler():
    """Assembler with a fixed shipping quote and tax rate instead of the flat-rate defaults."""
    from storefront.checkout.assembler import OrderAssembler
    from storefront.pricing.tax import FlatRateTax
    from storefront.shipping.port import ShippingCalculator, ShippingMethod

    class QuotedShipping(ShippingCalculator):
        def __init__(self, amount):
            self.amount = Decimal(amount)

        def calculate_shipping(self, cart_lines, destination, method, now=None):
            return self.amount

        def get_available_methods(self, destination):
            return [ShippingMethod("standard", "Standard", "Quoted", self.amount, 5)]

    def _make(shipping="3.00", tax_rate="0"):
        return OrderAssembler(shipping_calculator=QuotedShipping(shipping), tax_calculator=FlatRateTax(tax_rate))

    return _make

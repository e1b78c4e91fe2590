"""Shared BDD fixtures and step definitions for checkout."""

from decimal import Decimal

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then
from storefront.cart.cart import Cart, CartStatus
from storefront.catalogue.product import Product
from storefront.coupon.coupon import Coupon
from storefront.order.order import Order


@pytest.fixture
def products():
    """Products created in the scenario, by SKU."""
    return {}


@pytest.fixture
def error():
    """Container for the error raised by a When step."""
    return {"exc": None}


@pytest.fixture
def carts():
    return []


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{sku}" priced {price} with {stock:d} in stock'))
def _(products, make_product, sku, price, stock):
    products[sku] = make_product(sku=sku, price=price, stock_quantity=stock)


@given(parsers.cfparse('a cart for "{customer_id}" with {quantity:d} of "{sku}"'), target_fixture="cart")
def _(products, carts, make_cart, customer_id, quantity, sku):
    cart = make_cart([(products[sku], quantity)], customer_id=customer_id)
    carts.append(cart)
    return cart


@given(parsers.cfparse('another cart for "{customer_id}" with {quantity:d} of "{sku}"'))
def _(products, carts, make_cart, customer_id, quantity, sku):
    carts.append(make_cart([(products[sku], quantity)], customer_id=customer_id))


@given(parsers.cfparse('the cart also has {quantity:d} of "{sku}"'), target_fixture="cart")
def _(cart, products, quantity, sku):
    repo = current_domain.repository_for(Cart)
    cart = repo.get(cart.id)
    product = products[sku]
    cart.add_item(product_id=str(product.id), quantity=quantity, unit_price_snapshot=product.price)
    repo.add(cart)
    return cart


@given(parsers.cfparse('a coupon "{code}" worth {amount} off orders over {minimum}'))
def _(make_coupon, code, amount, minimum):
    make_coupon(code=code, discount_value=amount, minimum_order_amount=Decimal(minimum))


@given(parsers.cfparse('a coupon "{code}" worth {amount} off'))
def _(make_coupon, code, amount):
    make_coupon(code=code, discount_value=amount)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('the order {field} is "{amount}"'))
def _(order, field, amount):
    stored = current_domain.repository_for(Order).get(order.id)
    assert getattr(stored, field.replace(" ", "_")) == amount


@then(parsers.cfparse('"{sku}" has {stock:d} in stock'))
def _(products, sku, stock):
    assert current_domain.repository_for(Product).get(products[sku].id).stock_quantity == stock


@then("the cart is converted")
def _(cart, order):
    stored = current_domain.repository_for(Cart).get(cart.id)
    assert stored.status == CartStatus.CONVERTED.value
    assert stored.converted_order_id == str(order.id)


@then("the cart is still active")
def _(cart):
    assert current_domain.repository_for(Cart).get(cart.id).status == CartStatus.ACTIVE.value


@then(parsers.cfparse('checkout fails with "{code}"'))
def _(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code


@then(parsers.cfparse('coupon "{code}" has been used {count:d} time'))
def _(code, count):
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    assert coupon.usage_count == count

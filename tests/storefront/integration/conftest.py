import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storefront.api import cart_router, order_router, referral_router, register_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(referral_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def checkout_body(address):
    def _body(**overrides):
        body = {"billing_address": dict(address), "shipping_method": "standard", "payment_method": "card"}
        body.update(overrides)
        return body

    return _body


@pytest.fixture()
def cart_with(client):
    """POST a cart and add ``(product, quantity)`` lines to it through the API."""

    def _cart(*lines, customer_id="cust-api-001", referral_code=None):
        response = client.post("/carts", json={"customer_id": customer_id, "referral_code": referral_code})
        assert response.status_code == 201
        cart_id = response.json()["cart_id"]
        for product, quantity in lines:
            response = client.post(
                f"/carts/{cart_id}/items",
                json={"product_id": str(product.id), "quantity": quantity},
            )
            assert response.status_code == 200
        return cart_id

    return _cart

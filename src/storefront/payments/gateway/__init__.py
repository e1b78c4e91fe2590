"""Payment gateway factory.

``get_gateway()`` / ``set_gateway()`` swap the active implementation;
``FakeGateway`` is the default.
"""

from storefront.payments.gateway.fake_adapter import FakeGateway
from storefront.payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None

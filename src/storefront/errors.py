"""Storefront error taxonomy.

Every error carries a stable machine-readable ``code`` and a human-readable
``reason``. The HTTP layer maps ``http_status``; malformed input is reported
with protean's ``ValidationError`` (field -> messages) instead.
"""

from decimal import Decimal
from typing import Any


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    code = "storefront_error"
    http_status = 400

    def __init__(self, reason: str, **details: Any):
        self.reason = reason
        self.details = details
        super().__init__(reason)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "reason": self.reason}
        if self.details:
            payload["details"] = {k: str(v) if isinstance(v, Decimal) else v for k, v in self.details.items()}
        return payload


class NotFound(StorefrontError):
    """A cart, order, coupon, referral code or product does not exist."""

    code = "not_found"
    http_status = 404

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}", kind=kind, identifier=identifier)


class EmptyCart(StorefrontError):
    code = "empty_cart"
    http_status = 422

    def __init__(self, cart_id: str):
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} has no items", cart_id=cart_id)


class InsufficientStock(StorefrontError):
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, sku: str, requested: int, available: int):
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, available {available}",
            sku=sku,
            requested=requested,
            available=available,
        )


class InvalidTransition(StorefrontError):
    code = "invalid_transition"
    http_status = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition order from {current} to {target}", current=current, target=target)


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponError(StorefrontError):
    """Base class for coupon validation failures."""

    code = "coupon_error"
    http_status = 422

    def __init__(self, coupon_code: str, reason: str, **details: Any):
        self.coupon_code = coupon_code
        super().__init__(reason, coupon_code=coupon_code, **details)


class CouponNotFound(CouponError):
    code = "coupon_not_found"
    http_status = 404

    def __init__(self, coupon_code: str):
        super().__init__(coupon_code, f"Coupon {coupon_code} does not exist")


class CouponExpired(CouponError):
    code = "coupon_expired"

    def __init__(self, coupon_code: str, reason: str | None = None):
        super().__init__(coupon_code, reason or f"Coupon {coupon_code} is outside its validity window")


class CouponExhausted(CouponError):
    code = "coupon_exhausted"

    def __init__(self, coupon_code: str, usage_limit: int):
        super().__init__(coupon_code, f"Coupon {coupon_code} reached its usage limit", usage_limit=usage_limit)


class CouponAlreadyUsed(CouponError):
    code = "coupon_already_used"

    def __init__(self, coupon_code: str, customer_id: str):
        super().__init__(
            coupon_code,
            f"Coupon {coupon_code} was already used by this customer",
            customer_id=customer_id,
        )


class MinimumNotMet(CouponError):
    code = "coupon_minimum_not_met"

    def __init__(self, coupon_code: str, minimum: Decimal, subtotal: Decimal):
        super().__init__(
            coupon_code,
            f"Coupon {coupon_code} requires an order of at least {minimum}",
            minimum=minimum,
            subtotal=subtotal,
        )


class CouponNotApplicable(CouponError):
    code = "coupon_not_applicable"

    def __init__(self, coupon_code: str):
        super().__init__(coupon_code, f"Coupon {coupon_code} does not apply to any item in the cart")


# ---------------------------------------------------------------------------
# Pricing, concurrency, collaborators
# ---------------------------------------------------------------------------
class PricingInvariantViolation(StorefrontError):
    """Totals disagree with each other. Always fatal, never corrected."""

    code = "pricing_invariant_violation"
    http_status = 500


class TransactionConflict(StorefrontError):
    code = "transaction_conflict"
    http_status = 409

    def __init__(self, operation: str, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"{operation} kept conflicting with concurrent updates after {attempts} attempts",
            operation=operation,
            attempts=attempts,
        )


class CommissionError(StorefrontError):
    code = "commission_error"
    http_status = 422


class ShippingError(StorefrontError):
    code = "shipping_error"
    http_status = 422


class PaymentError(StorefrontError):
    code = "payment_error"
    http_status = 402

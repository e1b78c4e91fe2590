"""Checkout input validation.

Each ``validate_*`` function is pure: it takes raw input and returns the
cleaned value plus a list of messages, without touching persistence.
``build_order_attributes`` chains them and raises one ``ValidationError``
listing every bad field.
"""

import re
from dataclasses import dataclass

from protean.exceptions import ValidationError

ADDRESS_FIELDS = ("name", "line1", "line2", "city", "state", "postal_code", "country")
REQUIRED_ADDRESS_FIELDS = ("line1", "city", "state", "postal_code", "country")

_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,50}$")
_PAYMENT_METHOD_PATTERN = re.compile(r"^[a-z][a-z0-9_]{1,49}$")


@dataclass(frozen=True)
class OrderAttributes:
    billing_address: dict
    shipping_address: dict | None = None
    shipping_method: str = "standard"
    payment_method: str | None = None
    coupon_code: str | None = None
    customer_notes: str | None = None
    actor: str | None = None


def validate_address(raw, required=True) -> tuple[dict | None, list[str]]:
    if raw is None:
        return None, ["Address is required"] if required else []
    if not isinstance(raw, dict):
        return None, ["Address must be an object"]

    address = {}
    for field_name in ADDRESS_FIELDS:
        value = raw.get(field_name)
        if isinstance(value, str):
            value = value.strip()
        if value:
            address[field_name] = value

    messages = [f"{field_name} is required" for field_name in REQUIRED_ADDRESS_FIELDS if field_name not in address]
    if "country" in address:
        address["country"] = address["country"].upper()
        if len(address["country"]) != 2:
            messages.append("country must be a two-letter ISO code")
    return address, messages


def validate_payment_method(raw) -> tuple[str | None, list[str]]:
    if raw is None or raw == "":
        return None, []
    value = str(raw).strip().lower()
    if not _PAYMENT_METHOD_PATTERN.match(value):
        return None, [f"Unsupported payment method: {raw}"]
    return value, []


def validate_shipping_method(raw, allowed=None) -> tuple[str, list[str]]:
    value = str(raw).strip().lower() if raw else "standard"
    if allowed is not None and value not in allowed:
        return value, [f"Unknown shipping method: {value}"]
    return value, []


def validate_coupon_code(raw) -> tuple[str | None, list[str]]:
    if raw is None or not str(raw).strip():
        return None, []
    value = str(raw).strip().upper()
    if not _CODE_PATTERN.match(value):
        return None, ["Coupon code must be 3-50 letters, digits, dashes or underscores"]
    return value, []


def build_order_attributes(raw: dict, allowed_shipping_methods=None) -> OrderAttributes:
    """Validate raw checkout input into ``OrderAttributes`` or raise ``ValidationError``."""
    raw = raw or {}
    errors: dict[str, list[str]] = {}

    def check(field_name, result):
        value, messages = result
        if messages:
            errors[field_name] = messages
        return value

    billing = check("billing_address", validate_address(raw.get("billing_address")))
    shipping = check("shipping_address", validate_address(raw.get("shipping_address"), required=False))
    payment_method = check("payment_method", validate_payment_method(raw.get("payment_method")))
    shipping_method = check(
        "shipping_method", validate_shipping_method(raw.get("shipping_method"), allowed_shipping_methods)
    )
    coupon_code = check("coupon_code", validate_coupon_code(raw.get("coupon_code")))

    notes = raw.get("customer_notes")
    if notes is not None and len(str(notes)) > 2000:
        errors["customer_notes"] = ["Notes cannot exceed 2000 characters"]

    if errors:
        raise ValidationError(errors)

    return OrderAttributes(
        billing_address=billing,
        shipping_address=shipping,
        shipping_method=shipping_method,
        payment_method=payment_method,
        coupon_code=coupon_code,
        customer_notes=notes,
        actor=raw.get("actor"),
    )

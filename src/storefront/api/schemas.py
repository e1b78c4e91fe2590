"""Pydantic request/response schemas for the Storefront API.

These are external contracts, separate from the internal protean commands.
Money is exchanged as decimal strings.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str | None = None
    line1: str
    line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = Field(min_length=2, max_length=2)


class CartItemSchema(BaseModel):
    item_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    unit_price_snapshot: str | None = None


class OrderLineItemSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    sku: str
    name: str
    unit_price: str
    quantity: int
    line_total: str


class StatusChangeSchema(BaseModel):
    from_status: str | None = None
    to_status: str
    changed_at: datetime
    actor: str | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    customer_id: str | None = None
    session_id: str | None = None
    referral_code: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "session_id": None,
                    "referral_code": "FRIEND10",
                }
            ]
        }
    }


class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    coupon_code: str


class CheckoutRequest(BaseModel):
    billing_address: AddressSchema
    shipping_address: AddressSchema | None = None
    shipping_method: str = "standard"
    payment_method: str | None = None
    coupon_code: str | None = None
    customer_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "billing_address": {
                        "line1": "1 Market St",
                        "city": "San Francisco",
                        "state": "CA",
                        "postal_code": "94105",
                        "country": "US",
                    },
                    "shipping_method": "standard",
                    "payment_method": "card",
                    "coupon_code": "SAVE10",
                }
            ]
        }
    }


class CartIdResponse(BaseModel):
    cart_id: str


class ItemIdResponse(BaseModel):
    item_id: str


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str | None = None
    status: str
    coupon_code: str | None = None
    referral_code: str | None = None
    subtotal: Decimal
    items: list[CartItemSchema]


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------
class SubmitForPaymentRequest(BaseModel):
    payment_method: str


class CapturePaymentRequest(BaseModel):
    payment_details: dict = Field(default_factory=dict)


class TransitionRequest(BaseModel):
    reason: str | None = None
    actor: str | None = None


class RefundRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    reason: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str | None = None
    status: str
    currency: str
    subtotal: str
    discount_total: str
    shipping_total: str
    tax_total: str
    grand_total: str
    coupon_code: str | None = None
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    line_items: list[OrderLineItemSchema]
    status_history: list[StatusChangeSchema]


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------
class GenerateReferralCodeRequest(BaseModel):
    customer_id: str
    commission_type: str = "percentage"
    commission_value: Decimal = Field(gt=0)
    code: str | None = None


class ReferralCodeResponse(BaseModel):
    referral_code_id: str
    code: str
    commission_type: str
    commission_value: str
    status: str


class TrackClickRequest(BaseModel):
    customer_id: str | None = None
    session_id: str | None = None
    user_agent: str | None = None
    referrer_url: str | None = None


class ClickResponse(BaseModel):
    click_id: str
    expires_at: datetime


class CommissionStatusRequest(BaseModel):
    status: str


class CommissionResponse(BaseModel):
    commission_id: str
    order_id: str
    amount: str
    status: str
    paid_at: datetime | None = None


class StatusResponse(BaseModel):
    status: str = "ok"

"""Cart aggregate: the mutable basket a customer or guest fills before checkout.

Item prices stored here are display snapshots taken when the item was added.
Checkout never trusts them; it re-reads live prices from the catalogue.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartAbandoned,
    CartConverted,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from storefront.domain import storefront
from storefront.pricing.money import ZERO, quantize, to_decimal


class CartStatus(Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    ABANDONED = "abandoned"


def _same_line(item, product_id, variant_id) -> bool:
    item_variant = str(item.variant_id) if item.variant_id else None
    return str(item.product_id) == str(product_id) and item_variant == (str(variant_id) if variant_id else None)


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price_snapshot = String(max_length=20)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    customer_id = Identifier()  # Empty for guest carts
    session_id = String(max_length=255)
    items = HasMany(CartItem)
    coupon_code = String(max_length=50)
    referral_code = String(max_length=50)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    converted_order_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def converted_cart_must_reference_its_order(self):
        if self.status == CartStatus.CONVERTED.value and not self.converted_order_id:
            raise ValidationError({"converted_order_id": ["A converted cart must reference its order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None, referral_code=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            referral_code=referral_code.upper() if referral_code else None,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def subtotal(self):
        """Display subtotal from the price snapshots. Not used for pricing an order."""
        total = sum(
            (to_decimal(item.unit_price_snapshot) * item.quantity for item in self.items),
            ZERO,
        )
        return quantize(total)

    @property
    def is_active(self) -> bool:
        return self.status == CartStatus.ACTIVE.value

    def _ensure_active(self, action):
        if not self.is_active:
            raise ValidationError({"status": [f"Cannot {action} a {self.status} cart"]})

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, variant_id=None, unit_price_snapshot=None):
        """Add an item, or top up the quantity of the same product/variant already in the cart."""
        self._ensure_active("add items to")
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = next((i for i in self.items if _same_line(i, product_id, variant_id)), None)

        if existing:
            existing.quantity += quantity
            if unit_price_snapshot is not None:
                existing.unit_price_snapshot = str(unit_price_snapshot)
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price_snapshot=str(unit_price_snapshot) if unit_price_snapshot is not None else None,
                added_at=now,
            )
            self.add_items(item)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                unit_price_snapshot=item.unit_price_snapshot,
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        self._ensure_active("update items in")
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        self._ensure_active("remove items from")

        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    # -------------------------------------------------------------------
    # Coupon and referral
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code):
        """Remember a coupon code for checkout. Validity is checked when the order is assembled."""
        self._ensure_active("apply a coupon to")
        if not coupon_code or not coupon_code.strip():
            raise ValidationError({"coupon_code": ["Coupon code cannot be blank"]})

        self.coupon_code = coupon_code.strip().upper()
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=self.coupon_code))

    def remove_coupon(self):
        self._ensure_active("remove a coupon from")
        if not self.coupon_code:
            raise ValidationError({"coupon_code": ["No coupon applied"]})

        removed = self.coupon_code
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=removed))

    def attach_referral(self, referral_code):
        self._ensure_active("attach a referral to")
        self.referral_code = referral_code.strip().upper()
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def convert_to_order(self, order_id):
        """Archive the cart as the source of ``order_id``."""
        self._ensure_active("convert")
        if not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})

        self.converted_order_id = order_id
        self.status = CartStatus.CONVERTED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                order_id=str(order_id),
                customer_id=str(self.customer_id) if self.customer_id else None,
                item_count=len(self.items),
            )
        )

    def abandon(self):
        self._ensure_active("abandon")

        now = datetime.now(UTC)
        self.status = CartStatus.ABANDONED.value
        self.updated_at = now

        self.raise_(CartAbandoned(cart_id=str(self.id), abandoned_at=now))

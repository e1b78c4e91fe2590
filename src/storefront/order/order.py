"""Order aggregate: the immutable result of checking out a cart.

Line items, addresses and totals are frozen when the order is assembled. After
that only the status (and the payment references recorded alongside status
changes) may change, and every status change is appended to the order's
audit trail.

State Machine:
    draft → pending_payment → paid → processing → shipped → completed
    pending_payment | paid | processing → cancelled
    paid | processing | shipped | completed → refunded
"""

import secrets
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.config import get_settings
from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.order.events import OrderCreated, OrderStatusChanged, PaymentCaptured, PaymentRefunded
from storefront.pricing.engine import OrderTotals
from storefront.pricing.money import ZERO, to_decimal, to_str


class OrderStatus(Enum):
    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.PENDING_PAYMENT},
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED, OrderStatus.REFUNDED},
    OrderStatus.COMPLETED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Statuses in which the customer has paid and the money has not gone back
PAID_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.COMPLETED})

# Goods have left the warehouse: stock is not returned on refund
_SHIPPED_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.COMPLETED})


def generate_order_number(now=None) -> str:
    """Human-readable order number, e.g. ``ORD-1767225600-0042``."""
    now = now or datetime.now(UTC)
    prefix = get_settings().order_number_prefix
    return f"{prefix}-{int(now.timestamp())}-{secrets.randbelow(10000):04d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """Billing or shipping address as captured at checkout."""

    name = String(max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLineItem:
    """What was bought, at what price, frozen at purchase time."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=64)
    name = String(required=True, max_length=255)
    unit_price = String(required=True, max_length=20)
    quantity = Integer(required=True, min_value=1)
    line_total = String(required=True, max_length=20)


@storefront.entity(part_of="Order")
class OrderStatusChange:
    from_status = String(max_length=20)  # Empty for the initial entry
    to_status = String(required=True, max_length=20)
    changed_at = DateTime(required=True)
    actor = String(max_length=100)
    reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    customer_id = Identifier()  # Empty for guest orders
    cart_id = Identifier()
    status = String(choices=OrderStatus, default=OrderStatus.DRAFT.value)
    line_items = HasMany(OrderLineItem)
    status_history = HasMany(OrderStatusChange)
    billing_address = ValueObject(Address)
    shipping_address = ValueObject(Address)
    shipping_method = String(max_length=50)
    payment_method = String(max_length=50)
    payment_transaction_id = String(max_length=255)
    coupon_code = String(max_length=50)
    referral_code = String(max_length=50)
    currency = String(max_length=3, default="USD")
    subtotal = String(required=True, max_length=20)
    discount_total = String(required=True, max_length=20)
    shipping_total = String(required=True, max_length=20)
    tax_total = String(required=True, max_length=20)
    grand_total = String(required=True, max_length=20)
    refunded_total = String(max_length=20, default="0")
    customer_notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def paid_order_must_carry_transaction_reference(self):
        if OrderStatus(self.status) in PAID_STATUSES and not self.payment_transaction_id:
            raise ValidationError({"payment_transaction_id": ["A paid order must reference its payment"]})

    @invariant.post
    def refunds_cannot_exceed_grand_total(self):
        if to_decimal(self.refunded_total) > to_decimal(self.grand_total):
            raise ValidationError({"refunded_total": ["Cannot refund more than the order total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        totals: OrderTotals,
        billing_address,
        shipping_address=None,
        customer_id=None,
        cart_id=None,
        shipping_method=None,
        payment_method=None,
        coupon_code=None,
        referral_code=None,
        customer_notes=None,
        actor="system",
    ):
        """Build a new order from priced lines.

        The order starts ``pending_payment`` when a payment method is known,
        ``draft`` otherwise. Shipping defaults to the billing address.
        """
        now = datetime.now(UTC)
        status = OrderStatus.PENDING_PAYMENT if payment_method else OrderStatus.DRAFT

        order = cls(
            order_number=generate_order_number(now),
            customer_id=customer_id,
            cart_id=cart_id,
            status=status.value,
            billing_address=billing_address,
            shipping_address=shipping_address or billing_address,
            shipping_method=shipping_method,
            payment_method=payment_method,
            coupon_code=coupon_code,
            referral_code=referral_code,
            currency=get_settings().currency,
            subtotal=to_str(totals.subtotal),
            discount_total=to_str(totals.discount_total),
            shipping_total=to_str(totals.shipping_total),
            tax_total=to_str(totals.tax_total),
            grand_total=to_str(totals.grand_total),
            refunded_total=to_str(ZERO),
            customer_notes=customer_notes,
            created_at=now,
            updated_at=now,
        )
        for line in totals.lines:
            order.add_line_items(
                OrderLineItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    sku=line.sku,
                    name=line.name,
                    unit_price=to_str(line.unit_price),
                    quantity=line.quantity,
                    line_total=to_str(line.line_total),
                )
            )
        order.add_status_history(OrderStatusChange(to_status=status.value, changed_at=now, actor=actor))

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id) if customer_id else None,
                cart_id=str(cart_id) if cart_id else None,
                status=order.status,
                item_count=len(order.line_items),
                subtotal=order.subtotal,
                discount_total=order.discount_total,
                shipping_total=order.shipping_total,
                tax_total=order.tax_total,
                grand_total=order.grand_total,
                currency=order.currency,
                coupon_code=coupon_code,
                referral_code=referral_code,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def totals(self) -> OrderTotals:
        """Totals rebuilt from the stored line items; must match the stored grand total."""
        return OrderTotals.from_line_items(self.line_items, self.discount_total, self.shipping_total, self.tax_total)

    @property
    def is_paid(self) -> bool:
        return OrderStatus(self.status) in PAID_STATUSES

    @property
    def has_shipped(self) -> bool:
        return OrderStatus(self.status) in _SHIPPED_STATUSES

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in _VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _transition(self, target: OrderStatus, actor=None, reason=None, **changes):
        current = OrderStatus(self.status)
        if not self.can_transition_to(target):
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            for field_name, value in changes.items():
                setattr(self, field_name, value)
            self.status = target.value
            self.add_status_history(
                OrderStatusChange(
                    from_status=current.value,
                    to_status=target.value,
                    changed_at=now,
                    actor=actor,
                    reason=reason,
                )
            )
            self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id) if self.customer_id else None,
                old_status=current.value,
                new_status=target.value,
                actor=actor,
                reason=reason,
                changed_at=now,
            )
        )

    def submit_for_payment(self, payment_method, actor=None):
        if not payment_method:
            raise ValidationError({"payment_method": ["Payment method is required"]})
        self._transition(OrderStatus.PENDING_PAYMENT, actor=actor, payment_method=payment_method)

    def record_payment(self, transaction_id, actor=None):
        if not transaction_id:
            raise ValidationError({"payment_transaction_id": ["Transaction id is required"]})

        self._transition(OrderStatus.PAID, actor=actor, payment_transaction_id=transaction_id)
        self.raise_(
            PaymentCaptured(
                order_id=str(self.id),
                transaction_id=transaction_id,
                amount=self.grand_total,
                captured_at=self.updated_at,
            )
        )

    def mark_processing(self, actor=None):
        self._transition(OrderStatus.PROCESSING, actor=actor)

    def ship(self, actor=None, reason=None):
        self._transition(OrderStatus.SHIPPED, actor=actor, reason=reason)

    def complete(self, actor=None):
        self._transition(OrderStatus.COMPLETED, actor=actor)

    def cancel(self, reason=None, actor=None):
        self._transition(OrderStatus.CANCELLED, actor=actor, reason=reason)

    def record_refund(self, amount, reason=None, refund_id=None, actor=None):
        """Record money returned to the customer. A refund of the full total moves the order to ``refunded``."""
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if not self.can_transition_to(OrderStatus.REFUNDED):
            raise InvalidTransition(self.status, OrderStatus.REFUNDED.value)

        refunded_total = to_decimal(self.refunded_total) + amount
        if refunded_total == to_decimal(self.grand_total):
            self._transition(OrderStatus.REFUNDED, actor=actor, reason=reason, refunded_total=to_str(refunded_total))
        else:
            with atomic_change(self):
                self.refunded_total = to_str(refunded_total)
                self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentRefunded(
                order_id=str(self.id),
                refund_id=refund_id,
                amount=to_str(amount),
                reason=reason,
                refunded_at=self.updated_at,
            )
        )

    def refund(self, reason=None, actor=None):
        """Refund whatever has not been refunded yet."""
        remaining = to_decimal(self.grand_total) - to_decimal(self.refunded_total)
        if remaining <= ZERO:
            # Zero-total orders have nothing to pay back; only the status moves
            self._transition(OrderStatus.REFUNDED, actor=actor, reason=reason)
            return
        self.record_refund(remaining, reason=reason, actor=actor)

"""Order assembly: turns an active cart into an order in one all-or-nothing unit of work.

Pipeline steps, each callable on its own:

    validate_attributes → load_cart → resolve_lines → validate_coupon →
    reserve_stock → price → persist

Everything from ``load_cart`` on runs inside one unit of work. If any step
after the reservation fails, the reservation is released and the unit of
work rolls back: no order, no coupon redemption, no stock change, and the
cart stays active. Conflicting concurrent writes are retried a bounded number
of times before ``TransactionConflict`` surfaces.

The assembler never calls a payment gateway.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.catalogue import reader
from storefront.checkout.attributes import OrderAttributes, build_order_attributes
from storefront.coupon.coupon import Coupon
from storefront.coupon.validation import CouponApplication, CouponValidator
from storefront.errors import EmptyCart, NotFound
from storefront.inventory.ledger import ReservationToken, StockLedger
from storefront.order.order import Address, Order
from storefront.pricing.engine import OrderTotals, PricingEngine, PricingLine
from storefront.pricing.tax import FlatRateTax, TaxCalculator
from storefront.shipping.flat_rate import FlatRateShipping
from storefront.shipping.port import ShippingCalculator
from storefront.utils.logging import bind_order_context, clear_order_context
from storefront.utils.retry import run_in_unit_of_work

logger = structlog.get_logger(__name__)


class OrderAssembler:
    def __init__(
        self,
        shipping_calculator: ShippingCalculator | None = None,
        tax_calculator: TaxCalculator | None = None,
        ledger: StockLedger | None = None,
        validator: CouponValidator | None = None,
        engine: PricingEngine | None = None,
    ):
        self.shipping_calculator = shipping_calculator or FlatRateShipping()
        self.tax_calculator = tax_calculator or FlatRateTax()
        self.ledger = ledger or StockLedger()
        self.validator = validator or CouponValidator()
        self.engine = engine or PricingEngine()

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def validate_attributes(self, order_attrs) -> OrderAttributes:
        if isinstance(order_attrs, OrderAttributes):
            return order_attrs
        allowed = {method.id for method in self.shipping_calculator.get_available_methods(None)}
        return build_order_attributes(order_attrs, allowed_shipping_methods=allowed)

    def load_cart(self, cart_id) -> Cart:
        try:
            cart = current_domain.repository_for(Cart).get(str(cart_id))
        except ObjectNotFoundError:
            raise NotFound("Cart", str(cart_id)) from None

        if not cart.is_active:
            raise ValidationError({"cart": [f"Cart {cart_id} is {cart.status} and cannot be checked out"]})
        if not cart.items:
            raise EmptyCart(str(cart_id))
        return cart

    def resolve_lines(self, cart: Cart) -> list[PricingLine]:
        """Join each cart item with live catalogue data. Cart price snapshots are ignored."""
        return [
            PricingLine(entry=reader.lookup(item.product_id, item.variant_id), quantity=item.quantity)
            for item in cart.items
        ]

    def validate_coupon(self, coupon_code, lines, customer_id, now) -> CouponApplication | None:
        if not coupon_code:
            return None
        return self.validator.validate(coupon_code, lines, customer_id=customer_id, now=now)

    def reserve_stock(self, lines) -> ReservationToken:
        return self.ledger.reserve(lines)

    def price(self, lines, application, attrs: OrderAttributes, now) -> OrderTotals:
        destination = attrs.shipping_address or attrs.billing_address
        shipping_total = self.shipping_calculator.calculate_shipping(lines, destination, attrs.shipping_method, now=now)
        tax_rate = self.tax_calculator.rate_for(destination)
        return self.engine.price(
            lines,
            application=application,
            shipping_total=shipping_total,
            tax_rate=tax_rate,
            now=now,
        )

    def persist(self, cart: Cart, attrs: OrderAttributes, totals: OrderTotals, application) -> Order:
        """Write the order, redeem the coupon and archive the cart in the current unit of work."""
        order = Order.create(
            totals=totals,
            billing_address=Address(**attrs.billing_address),
            shipping_address=Address(**attrs.shipping_address) if attrs.shipping_address else None,
            customer_id=cart.customer_id,
            cart_id=str(cart.id),
            shipping_method=attrs.shipping_method,
            payment_method=attrs.payment_method,
            coupon_code=application.code if application else None,
            referral_code=cart.referral_code,
            customer_notes=attrs.customer_notes,
            actor=attrs.actor or "system",
        )
        current_domain.repository_for(Order).add(order)

        if application is not None:
            coupon_repo = current_domain.repository_for(Coupon)
            coupon = coupon_repo.get(application.coupon_id)
            coupon.redeem(order_id=str(order.id), customer_id=cart.customer_id)
            coupon_repo.add(coupon)

        cart.convert_to_order(str(order.id))
        current_domain.repository_for(Cart).add(cart)
        return order

    # -------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------
    def assemble(self, cart_id, attrs: OrderAttributes) -> Order:
        """Run every step after attribute validation. Must be called inside a unit of work."""
        now = datetime.now(UTC)
        cart = self.load_cart(cart_id)
        lines = self.resolve_lines(cart)
        application = self.validate_coupon(attrs.coupon_code or cart.coupon_code, lines, cart.customer_id, now)

        token = self.reserve_stock(lines)
        try:
            totals = self.price(lines, application, attrs, now)
            return self.persist(cart, attrs, totals, application)
        except Exception:
            logger.warning("Order assembly failed after reservation, releasing stock", cart_id=str(cart_id))
            self.ledger.release(token)
            raise

    def create_order_from_cart(self, cart_id, order_attrs) -> Order:
        attrs = self.validate_attributes(order_attrs)

        bind_order_context(cart_id=str(cart_id))
        try:
            order = run_in_unit_of_work("create_order_from_cart", lambda: self.assemble(cart_id, attrs))
            logger.info(
                "Order created",
                order_id=str(order.id),
                order_number=order.order_number,
                status=order.status,
                grand_total=order.grand_total,
            )
            return order
        finally:
            clear_order_context()

"""Payment boundary: talks to the gateway, then records the outcome on the order."""

import structlog
from protean.utils.globals import current_domain

from storefront.errors import InvalidTransition, PaymentError
from storefront.order.lifecycle import RecordPaymentCaptured, load_order, release_order_stock
from storefront.order.order import Order, OrderStatus
from storefront.payments.gateway import get_gateway
from storefront.pricing.money import quantize, to_decimal
from storefront.utils.retry import run_in_unit_of_work

logger = structlog.get_logger(__name__)


class PaymentProcessor:
    def __init__(self, gateway=None):
        self.gateway = gateway or get_gateway()

    def capture_payment(self, order_id, payment_details: dict, actor=None) -> Order:
        """Authorize and capture the order's grand total, then mark the order paid."""
        order = load_order(order_id)
        if not order.can_transition_to(OrderStatus.PAID):
            raise InvalidTransition(order.status, OrderStatus.PAID.value)

        amount = to_decimal(order.grand_total)
        authorization = self.gateway.authorize(amount, payment_details)
        if not authorization.success:
            logger.warning("Payment authorization declined", order_id=str(order_id), reason=authorization.failure_reason)
            raise PaymentError(authorization.failure_reason or "Payment authorization failed", order_id=str(order_id))

        capture = self.gateway.capture(authorization.transaction_id, amount)
        if not capture.success:
            logger.warning("Payment capture failed", order_id=str(order_id), reason=capture.failure_reason)
            raise PaymentError(capture.failure_reason or "Payment capture failed", order_id=str(order_id))

        current_domain.process(
            RecordPaymentCaptured(order_id=str(order_id), transaction_id=capture.transaction_id, actor=actor),
            asynchronous=False,
        )
        logger.info("Payment captured", order_id=str(order_id), amount=str(amount))
        return load_order(order_id)

    def refund_payment(self, order_id, amount, reason=None, actor=None) -> Order:
        """Refund ``amount`` through the gateway. Refunding the whole total moves the order to ``refunded``."""
        amount = quantize(amount)
        order = load_order(order_id)
        if not order.payment_transaction_id:
            raise PaymentError(f"Order {order.order_number} has no captured payment", order_id=str(order_id))
        if not order.can_transition_to(OrderStatus.REFUNDED):
            raise InvalidTransition(order.status, OrderStatus.REFUNDED.value)

        result = self.gateway.refund(order.payment_transaction_id, amount, reason or "")
        if not result.success:
            logger.warning("Refund failed", order_id=str(order_id), reason=result.failure_reason)
            raise PaymentError(result.failure_reason or "Refund failed", order_id=str(order_id))

        def record():
            current = load_order(order_id)
            shipped = current.has_shipped
            current.record_refund(amount, reason=reason, refund_id=result.refund_id, actor=actor)
            if current.status == OrderStatus.REFUNDED.value and not shipped:
                release_order_stock(current)
            current_domain.repository_for(Order).add(current)
            return current

        refunded = run_in_unit_of_work("refund_payment", record)
        logger.info("Payment refunded", order_id=str(order_id), amount=str(amount), status=refunded.status)
        return refunded

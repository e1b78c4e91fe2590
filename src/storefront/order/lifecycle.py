"""Order lifecycle: commands and handler for every status transition after checkout.

Cancelling an order, or refunding one whose goods never shipped, puts the
reserved stock back in the same unit of work as the status change.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import NotFound
from storefront.inventory.ledger import ReservationToken, StockLedger, StockLine
from storefront.order.order import Order


@storefront.command(part_of="Order")
class SubmitForPayment:
    order_id = Identifier(required=True)
    payment_method = String(required=True, max_length=50)
    actor = String(max_length=100)


@storefront.command(part_of="Order")
class RecordPaymentCaptured:
    order_id = Identifier(required=True)
    transaction_id = String(required=True, max_length=255)
    actor = String(max_length=100)


@storefront.command(part_of="Order")
class MarkProcessing:
    order_id = Identifier(required=True)
    actor = String(max_length=100)


@storefront.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    actor = String(max_length=100)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)
    actor = String(max_length=100)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor = String(max_length=100)


@storefront.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor = String(max_length=100)


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise NotFound("Order", str(order_id)) from None


def release_order_stock(order: Order, ledger: StockLedger | None = None) -> None:
    """Return every unit the order reserved to stock."""
    lines = tuple(
        StockLine(
            product_id=str(item.product_id),
            variant_id=str(item.variant_id) if item.variant_id else None,
            quantity=item.quantity,
        )
        for item in order.line_items
    )
    (ledger or StockLedger()).release(ReservationToken(reservation_id=str(order.id), lines=lines))


@storefront.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(SubmitForPayment)
    def submit_for_payment(self, command):
        order = load_order(command.order_id)
        order.submit_for_payment(command.payment_method, actor=command.actor)
        current_domain.repository_for(Order).add(order)

    @handle(RecordPaymentCaptured)
    def record_payment_captured(self, command):
        order = load_order(command.order_id)
        order.record_payment(command.transaction_id, actor=command.actor)
        current_domain.repository_for(Order).add(order)

    @handle(MarkProcessing)
    def mark_processing(self, command):
        order = load_order(command.order_id)
        order.mark_processing(actor=command.actor)
        current_domain.repository_for(Order).add(order)

    @handle(ShipOrder)
    def ship_order(self, command):
        order = load_order(command.order_id)
        order.ship(actor=command.actor, reason=command.reason)
        current_domain.repository_for(Order).add(order)

    @handle(CompleteOrder)
    def complete_order(self, command):
        order = load_order(command.order_id)
        order.complete(actor=command.actor)
        current_domain.repository_for(Order).add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        order.cancel(reason=command.reason, actor=command.actor)
        release_order_stock(order)
        current_domain.repository_for(Order).add(order)

    @handle(RefundOrder)
    def refund_order(self, command):
        order = load_order(command.order_id)
        shipped = order.has_shipped
        order.refund(reason=command.reason, actor=command.actor)
        if not shipped:
            release_order_stock(order)
        current_domain.repository_for(Order).add(order)

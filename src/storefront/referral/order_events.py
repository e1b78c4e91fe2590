"""Attributes a commission when an order becomes paid.

A failing attribution is logged and dropped: it must never affect the order.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.order.events import OrderStatusChanged
from storefront.order.order import Order, OrderStatus
from storefront.referral.attribution import CommissionAttributor
from storefront.referral.commission import Commission

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=Commission, stream_category="storefront::order")
class OrderPaidEventHandler:
    @handle(OrderStatusChanged)
    def attribute_commission(self, event: OrderStatusChanged) -> None:
        if event.new_status != OrderStatus.PAID.value:
            return

        try:
            order = current_domain.repository_for(Order).get(event.order_id)
            CommissionAttributor().attribute(order)
        except Exception:
            logger.exception("Commission attribution failed", order_id=str(event.order_id))

"""Commission attribution for paid orders.

An order is attributed to the referral code captured on its cart when that
code is still active, otherwise to the buyer's most recent click that is
still inside its attribution window. Attribution is idempotent: a second
call for the same order returns the commission recorded by the first,
even if the buyer has clicked another code or the first code was
deactivated since.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.errors import CommissionError
from storefront.order.order import Order
from storefront.referral.click import ReferralClick
from storefront.referral.commission import Commission
from storefront.referral.referral_code import ReferralCode

logger = structlog.get_logger(__name__)


class CommissionAttributor:
    def resolve_referral_code(self, order: Order, now=None) -> ReferralCode | None:
        now = now or datetime.now(UTC)
        code_repo = current_domain.repository_for(ReferralCode)

        if order.referral_code:
            referral_code = code_repo.find_by_code(order.referral_code)
            if referral_code is not None and referral_code.is_active:
                return referral_code
            logger.info("Order referral code unusable", order_id=str(order.id), referral_code=order.referral_code)

        if not order.customer_id:
            return None

        click = current_domain.repository_for(ReferralClick).latest_live_for(order.customer_id, now)
        if click is None:
            return None

        try:
            referral_code = code_repo.get(click.referral_code_id)
        except ObjectNotFoundError:
            return None
        return referral_code if referral_code.is_active else None

    def attribute(self, order: Order, now=None) -> Commission | None:
        if not order.is_paid:
            raise CommissionError(
                f"Order {order.order_number} is {order.status}; commissions are only attributed to paid orders",
                order_id=str(order.id),
                status=order.status,
            )

        commission_repo = current_domain.repository_for(Commission)
        existing = commission_repo.find_for_order(order.id)
        if existing is not None:
            return existing

        referral_code = self.resolve_referral_code(order, now)
        if referral_code is None:
            return None

        amount = referral_code.commission_for(order.subtotal)
        commission = Commission.create(
            referral_code_id=referral_code.id,
            order_id=order.id,
            amount=amount,
            referee_id=order.customer_id,
        )
        referral_code.record_conversion(order.id, amount)

        commission_repo.add(commission)
        current_domain.repository_for(ReferralCode).add(referral_code)

        logger.info(
            "Commission attributed",
            order_id=str(order.id),
            referral_code=referral_code.code,
            amount=str(amount),
        )
        return commission

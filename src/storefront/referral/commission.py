"""Commission aggregate: what a referrer earned on one order.

Status only moves forward, pending → approved → paid, and ``paid_at`` is set
exactly when the commission is paid.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.pricing.money import ZERO, to_decimal, to_str
from storefront.referral.events import CommissionCreated, CommissionStatusChanged


class CommissionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


_NEXT_STATUS = {
    CommissionStatus.PENDING: CommissionStatus.APPROVED,
    CommissionStatus.APPROVED: CommissionStatus.PAID,
}


@storefront.aggregate
class Commission:
    referral_code_id = Identifier(required=True)
    order_id = Identifier(required=True)
    referee_id = Identifier()
    amount = String(required=True, max_length=20)
    status = String(choices=CommissionStatus, default=CommissionStatus.PENDING.value)
    paid_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def amount_cannot_be_negative(self):
        if to_decimal(self.amount) < ZERO:
            raise ValidationError({"amount": ["Commission amount cannot be negative"]})

    @invariant.post
    def paid_at_set_only_when_paid(self):
        is_paid = self.status == CommissionStatus.PAID.value
        if is_paid and self.paid_at is None:
            raise ValidationError({"paid_at": ["A paid commission must record when it was paid"]})
        if not is_paid and self.paid_at is not None:
            raise ValidationError({"paid_at": ["Only paid commissions carry a payment date"]})

    @classmethod
    def create(cls, referral_code_id, order_id, amount, referee_id=None):
        now = datetime.now(UTC)
        commission = cls(
            referral_code_id=str(referral_code_id),
            order_id=str(order_id),
            referee_id=referee_id,
            amount=to_str(amount),
            status=CommissionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        commission.raise_(
            CommissionCreated(
                commission_id=str(commission.id),
                referral_code_id=str(referral_code_id),
                order_id=str(order_id),
                referee_id=str(referee_id) if referee_id else None,
                amount=commission.amount,
                created_at=now,
            )
        )
        return commission

    def _advance(self, target: CommissionStatus):
        current = CommissionStatus(self.status)
        if _NEXT_STATUS.get(current) != target:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = target.value
            if target == CommissionStatus.PAID:
                self.paid_at = now
            self.updated_at = now

        self.raise_(
            CommissionStatusChanged(
                commission_id=str(self.id),
                old_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )

    def approve(self):
        self._advance(CommissionStatus.APPROVED)

    def mark_paid(self):
        self._advance(CommissionStatus.PAID)

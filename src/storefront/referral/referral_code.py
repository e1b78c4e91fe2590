"""ReferralCode aggregate: a customer's shareable code and its running counters."""

import re
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront
from storefront.pricing.money import HUNDRED, ZERO, quantize, to_decimal, to_str
from storefront.referral.events import ReferralCodeGenerated, ReferralConverted

_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,32}$")


class CommissionType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ReferralCodeStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@storefront.aggregate
class ReferralCode:
    customer_id = Identifier(required=True)
    code = String(required=True, max_length=32)
    commission_type = String(choices=CommissionType, required=True)
    commission_value = String(required=True, max_length=20)
    status = String(choices=ReferralCodeStatus, default=ReferralCodeStatus.ACTIVE.value)
    clicks_count = Integer(default=0, min_value=0)
    conversions_count = Integer(default=0, min_value=0)
    total_commission = String(max_length=20, default="0.00")
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def code_must_be_alphanumeric(self):
        if not _CODE_PATTERN.match(self.code or ""):
            raise ValidationError({"code": ["Referral code must be 4-32 letters or digits"]})

    @invariant.post
    def commission_value_must_be_in_range(self):
        value = to_decimal(self.commission_value)
        if value <= ZERO:
            raise ValidationError({"commission_value": ["Commission value must be positive"]})
        if self.commission_type == CommissionType.PERCENTAGE.value and value > HUNDRED:
            raise ValidationError({"commission_value": ["Percentage commission cannot exceed 100"]})

    @classmethod
    def create(cls, customer_id, code, commission_type, commission_value):
        now = datetime.now(UTC)
        referral_code = cls(
            customer_id=customer_id,
            code=code.strip().upper(),
            commission_type=commission_type,
            commission_value=to_str(commission_value),
            status=ReferralCodeStatus.ACTIVE.value,
            clicks_count=0,
            conversions_count=0,
            total_commission=to_str(ZERO),
            created_at=now,
            updated_at=now,
        )
        referral_code.raise_(
            ReferralCodeGenerated(
                referral_code_id=str(referral_code.id),
                customer_id=str(customer_id),
                code=referral_code.code,
                commission_type=referral_code.commission_type,
                commission_value=referral_code.commission_value,
            )
        )
        return referral_code

    @property
    def is_active(self) -> bool:
        return self.status == ReferralCodeStatus.ACTIVE.value

    def commission_for(self, subtotal):
        """Commission earned on an order with ``subtotal``."""
        value = to_decimal(self.commission_value)
        if CommissionType(self.commission_type) == CommissionType.PERCENTAGE:
            return quantize(to_decimal(subtotal) * value / HUNDRED)
        return quantize(value)

    def record_click(self):
        self.clicks_count += 1
        self.updated_at = datetime.now(UTC)

    def record_conversion(self, order_id, commission):
        with atomic_change(self):
            self.conversions_count += 1
            self.total_commission = to_str(to_decimal(self.total_commission) + to_decimal(commission))
            self.updated_at = datetime.now(UTC)

        self.raise_(
            ReferralConverted(
                referral_code_id=str(self.id),
                order_id=str(order_id),
                commission=to_str(commission),
                conversions_count=self.conversions_count,
                total_commission=self.total_commission,
            )
        )

    def deactivate(self):
        self.status = ReferralCodeStatus.INACTIVE.value
        self.updated_at = datetime.now(UTC)

    def activate(self):
        self.status = ReferralCodeStatus.ACTIVE.value
        self.updated_at = datetime.now(UTC)

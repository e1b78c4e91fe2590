"""Domain events for referral codes, clicks and commissions."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="ReferralCode")
class ReferralCodeGenerated:
    __version__ = 1

    referral_code_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    code = String(required=True)
    commission_type = String(required=True)
    commission_value = String(required=True)


@storefront.event(part_of="ReferralClick")
class ReferralClickTracked:
    __version__ = 1

    click_id = Identifier(required=True)
    referral_code_id = Identifier(required=True)
    code = String(required=True)
    customer_id = Identifier()
    session_id = String()
    clicked_at = DateTime(required=True)
    expires_at = DateTime(required=True)


@storefront.event(part_of="Commission")
class CommissionCreated:
    """A paid order was attributed to a referral code."""

    __version__ = 1

    commission_id = Identifier(required=True)
    referral_code_id = Identifier(required=True)
    order_id = Identifier(required=True)
    referee_id = Identifier()
    amount = String(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="Commission")
class CommissionStatusChanged:
    __version__ = 1

    commission_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="ReferralCode")
class ReferralConverted:
    __version__ = 1

    referral_code_id = Identifier(required=True)
    order_id = Identifier(required=True)
    commission = String(required=True)
    conversions_count = Integer(required=True)
    total_commission = String(required=True)

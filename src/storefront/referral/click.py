"""ReferralClick aggregate: one visit through a referral link, attributable until it expires."""

from datetime import UTC, datetime, timedelta

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from storefront.config import get_settings
from storefront.domain import storefront
from storefront.referral.events import ReferralClickTracked


@storefront.aggregate
class ReferralClick:
    referral_code_id = Identifier(required=True)
    code = String(required=True, max_length=32)
    customer_id = Identifier()
    session_id = String(max_length=255)
    ip_address = String(max_length=45)
    user_agent = String(max_length=500)
    referrer_url = String(max_length=500)
    clicked_at = DateTime(required=True)
    expires_at = DateTime(required=True)

    @invariant.post
    def must_expire_after_click(self):
        if self.expires_at <= self.clicked_at:
            raise ValidationError({"expires_at": ["Attribution window must end after the click"]})

    @classmethod
    def record(
        cls,
        referral_code,
        customer_id=None,
        session_id=None,
        ip_address=None,
        user_agent=None,
        referrer_url=None,
        clicked_at=None,
    ):
        clicked_at = clicked_at or datetime.now(UTC)
        click = cls(
            referral_code_id=str(referral_code.id),
            code=referral_code.code,
            customer_id=customer_id,
            session_id=session_id,
            ip_address=ip_address,
            user_agent=user_agent,
            referrer_url=referrer_url,
            clicked_at=clicked_at,
            expires_at=clicked_at + timedelta(days=get_settings().referral_attribution_days),
        )
        click.raise_(
            ReferralClickTracked(
                click_id=str(click.id),
                referral_code_id=str(referral_code.id),
                code=referral_code.code,
                customer_id=str(customer_id) if customer_id else None,
                session_id=session_id,
                clicked_at=clicked_at,
                expires_at=click.expires_at,
            )
        )
        return click

    def is_live(self, now) -> bool:
        return self.clicked_at <= now <= self.expires_at

"""Referral management: codes, click tracking and commission payouts.

Commands are handled by ``ReferralHandler``; ``generate_referral_code``,
``track_click`` and ``update_commission_status`` are shortcuts that dispatch
them synchronously. ``referral_stats`` and ``list_commissions`` are reads.
"""

import base64
import secrets

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import NotFound
from storefront.pricing.money import ZERO, quantize, to_decimal, to_str
from storefront.referral.click import ReferralClick
from storefront.referral.commission import Commission, CommissionStatus
from storefront.referral.referral_code import ReferralCode


def random_code() -> str:
    """Six upper-case base32 characters."""
    return base64.b32encode(secrets.token_bytes(4)).decode("ascii")[:6]


@storefront.command(part_of="ReferralCode")
class GenerateReferralCode:
    customer_id = Identifier(required=True)
    commission_type = String(required=True)
    commission_value = String(required=True, max_length=20)
    code = String(max_length=32)


@storefront.command(part_of="ReferralClick")
class TrackClick:
    code = String(required=True, max_length=32)
    customer_id = Identifier()
    session_id = String(max_length=255)
    ip_address = String(max_length=45)
    user_agent = String(max_length=500)
    referrer_url = String(max_length=500)


@storefront.command(part_of="Commission")
class UpdateCommissionStatus:
    commission_id = Identifier(required=True)
    status = String(required=True)


@storefront.command_handler(part_of=ReferralCode)
class ReferralHandler:
    @handle(GenerateReferralCode)
    def generate_referral_code(self, command):
        repo = current_domain.repository_for(ReferralCode)
        if repo.find_by_customer(command.customer_id) is not None:
            raise ValidationError({"customer_id": ["Customer already has a referral code"]})

        code = command.code.strip().upper() if command.code else random_code()
        while not command.code and repo.find_by_code(code) is not None:
            code = random_code()
        if repo.find_by_code(code) is not None:
            raise ValidationError({"code": [f"Referral code {code} is taken"]})

        referral_code = ReferralCode.create(
            customer_id=command.customer_id,
            code=code,
            commission_type=command.commission_type,
            commission_value=command.commission_value,
        )
        repo.add(referral_code)
        return str(referral_code.id)


@storefront.command_handler(part_of=ReferralClick)
class ReferralClickHandler:
    @handle(TrackClick)
    def track_click(self, command):
        code_repo = current_domain.repository_for(ReferralCode)
        referral_code = code_repo.find_by_code(command.code)
        if referral_code is None or not referral_code.is_active:
            raise NotFound("ReferralCode", command.code.upper())

        click = ReferralClick.record(
            referral_code,
            customer_id=command.customer_id,
            session_id=command.session_id,
            ip_address=command.ip_address,
            user_agent=command.user_agent,
            referrer_url=command.referrer_url,
        )
        referral_code.record_click()

        current_domain.repository_for(ReferralClick).add(click)
        code_repo.add(referral_code)
        return str(click.id)


@storefront.command_handler(part_of=Commission)
class CommissionHandler:
    @handle(UpdateCommissionStatus)
    def update_commission_status(self, command):
        repo = current_domain.repository_for(Commission)
        try:
            commission = repo.get(command.commission_id)
        except ObjectNotFoundError:
            raise NotFound("Commission", str(command.commission_id)) from None

        if command.status == CommissionStatus.APPROVED.value:
            commission.approve()
        elif command.status == CommissionStatus.PAID.value:
            commission.mark_paid()
        else:
            raise ValidationError({"status": [f"Commissions cannot move to {command.status}"]})
        repo.add(commission)


# ---------------------------------------------------------------------------
# Shortcuts
# ---------------------------------------------------------------------------
def generate_referral_code(customer_id, commission_type, commission_value, code=None) -> ReferralCode:
    referral_code_id = current_domain.process(
        GenerateReferralCode(
            customer_id=str(customer_id),
            commission_type=commission_type,
            commission_value=to_str(commission_value),
            code=code,
        ),
        asynchronous=False,
    )
    return current_domain.repository_for(ReferralCode).get(referral_code_id)


def track_click(code, **metadata) -> ReferralClick:
    click_id = current_domain.process(TrackClick(code=code, **metadata), asynchronous=False)
    return current_domain.repository_for(ReferralClick).get(click_id)


def update_commission_status(commission_id, status) -> Commission:
    current_domain.process(
        UpdateCommissionStatus(commission_id=str(commission_id), status=status),
        asynchronous=False,
    )
    return current_domain.repository_for(Commission).get(str(commission_id))


def referral_stats(customer_id) -> dict:
    """Clicks, conversions and commission totals by status for a customer's referral code."""
    referral_code = current_domain.repository_for(ReferralCode).find_by_customer(customer_id)
    if referral_code is None:
        raise NotFound("ReferralCode", f"customer {customer_id}")

    commissions = current_domain.repository_for(Commission).for_referral_code(referral_code.id)
    by_status = {status: ZERO for status in CommissionStatus}
    for commission in commissions:
        by_status[CommissionStatus(commission.status)] += to_decimal(commission.amount)

    if referral_code.clicks_count:
        conversion_rate = quantize(
            to_decimal(referral_code.conversions_count) * 100 / referral_code.clicks_count,
            exponent=2,
        )
    else:
        conversion_rate = quantize(ZERO, exponent=2)

    clicks = current_domain.repository_for(ReferralClick).for_referral_code(referral_code.id)
    recent_clicks = sorted(clicks, key=lambda c: c.clicked_at, reverse=True)[:10]

    return {
        "referral_code": referral_code.code,
        "total_clicks": referral_code.clicks_count,
        "total_conversions": referral_code.conversions_count,
        "conversion_rate": conversion_rate,
        "total_commission": to_decimal(referral_code.total_commission),
        "pending_commission": by_status[CommissionStatus.PENDING],
        "approved_commission": by_status[CommissionStatus.APPROVED],
        "paid_commission": by_status[CommissionStatus.PAID],
        "recent_clicks": [
            {"clicked_at": c.clicked_at, "customer_id": c.customer_id, "referrer_url": c.referrer_url}
            for c in recent_clicks
        ],
    }


def list_commissions(referral_code_id=None, customer_id=None, status=None, limit=None) -> list[Commission]:
    """Commissions newest first, filtered by code, by the referrer who owns the code, or by status."""
    code_ids = None
    if referral_code_id:
        code_ids = [referral_code_id]
    if customer_id:
        referral_code = current_domain.repository_for(ReferralCode).find_by_customer(customer_id)
        owned = [str(referral_code.id)] if referral_code else []
        code_ids = owned if code_ids is None else [c for c in code_ids if str(c) in owned]

    commissions = current_domain.repository_for(Commission).matching(referral_code_ids=code_ids, status=status)
    return commissions[:limit] if limit else commissions

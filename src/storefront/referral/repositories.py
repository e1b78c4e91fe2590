"""Query methods for the referral aggregates."""

from storefront.domain import storefront
from storefront.referral.click import ReferralClick
from storefront.referral.commission import Commission
from storefront.referral.referral_code import ReferralCode


@storefront.repository(part_of=ReferralCode)
class ReferralCodeRepository:
    def find_by_code(self, code: str) -> ReferralCode | None:
        results = self._dao.query.filter(code=(code or "").strip().upper()).all().items
        return results[0] if results else None

    def find_by_customer(self, customer_id) -> ReferralCode | None:
        results = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return results[0] if results else None


@storefront.repository(part_of=ReferralClick)
class ReferralClickRepository:
    def latest_live_for(self, customer_id, now) -> ReferralClick | None:
        """Most recent click by ``customer_id`` whose attribution window is still open at ``now``."""
        clicks = [c for c in self._dao.query.filter(customer_id=str(customer_id)).all().items if c.is_live(now)]
        return max(clicks, key=lambda c: c.clicked_at) if clicks else None

    def for_referral_code(self, referral_code_id) -> list[ReferralClick]:
        return self._dao.query.filter(referral_code_id=str(referral_code_id)).all().items


@storefront.repository(part_of=Commission)
class CommissionRepository:
    def find_for_order(self, order_id) -> Commission | None:
        """The commission recorded for ``order_id``, whichever code earned it. An order earns at most one."""
        results = self._dao.query.filter(order_id=str(order_id)).all().items
        return results[0] if results else None

    def for_referral_code(self, referral_code_id) -> list[Commission]:
        return self._dao.query.filter(referral_code_id=str(referral_code_id)).all().items

    def matching(self, referral_code_ids=None, status=None) -> list[Commission]:
        """Commissions, newest first, optionally limited to some codes and one status."""
        filters = {}
        if status:
            filters["status"] = status
        query = self._dao.query.filter(**filters) if filters else self._dao.query
        commissions = query.all().items
        if referral_code_ids is not None:
            wanted = {str(code_id) for code_id in referral_code_ids}
            commissions = [c for c in commissions if str(c.referral_code_id) in wanted]
        return sorted(commissions, key=lambda c: c.created_at, reverse=True)

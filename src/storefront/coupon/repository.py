"""Repository for the Coupon aggregate."""

from storefront.coupon.coupon import Coupon, normalize_code
from storefront.domain import storefront


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        """Case-insensitive exact match on the coupon code."""
        results = self._dao.query.filter(code=normalize_code(code)).all().items
        return results[0] if results else None

"""Storefront bounded context: catalogue stock, carts, coupons, orders and referrals.

Everything that must change together when a cart becomes an order lives in
this one domain so the conversion runs inside a single unit of work.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)

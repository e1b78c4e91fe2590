"""Coupon management: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon
from storefront.domain import storefront


@storefront.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True)
    discount_value = String(required=True, max_length=20)
    max_discount = String(max_length=20)
    minimum_order_amount = String(max_length=20)
    usage_limit = Integer(min_value=1)
    usage_limit_per_customer = Integer(min_value=1)  # Store default when omitted
    valid_from = DateTime()
    valid_until = DateTime()
    included_product_ids = Text()  # JSON array of product ids
    excluded_product_ids = Text()  # JSON array of product ids


def _ids(raw):
    if not raw:
        return []
    return json.loads(raw) if isinstance(raw, str) else raw


@storefront.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            description=command.description,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            max_discount=command.max_discount,
            minimum_order_amount=command.minimum_order_amount,
            usage_limit=command.usage_limit,
            usage_limit_per_customer=command.usage_limit_per_customer,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            included_product_ids=_ids(command.included_product_ids),
            excluded_product_ids=_ids(command.excluded_product_ids),
        )
        repo.add(coupon)
        return str(coupon.id)

"""Cart coupon management: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class ApplyCouponToCart:
    cart_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@storefront.command(part_of="Cart")
class RemoveCouponFromCart:
    cart_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.apply_coupon(command.coupon_code)
        repo.add(cart)

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_coupon()
        repo.add(cart)

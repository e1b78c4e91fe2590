"""Cart management: commands and handler for creating, abandoning and referring carts."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class CreateCart:
    """Create a cart for a registered customer or a guest session."""

    customer_id = Identifier()
    session_id = String(max_length=255)
    referral_code = String(max_length=50)


@storefront.command(part_of="Cart")
class AttachReferral:
    cart_id = Identifier(required=True)
    referral_code = String(required=True, max_length=50)


@storefront.command(part_of="Cart")
class AbandonCart:
    cart_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = Cart.create(
            customer_id=command.customer_id,
            session_id=command.session_id,
            referral_code=command.referral_code,
        )
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(AttachReferral)
    def attach_referral(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.attach_referral(command.referral_code)
        repo.add(cart)

    @handle(AbandonCart)
    def abandon_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.abandon()
        repo.add(cart)

"""Cart item management: commands and handler."""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.catalogue import reader
from storefront.domain import storefront
from storefront.pricing.money import to_str


@storefront.command(part_of="Cart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        # Snapshot for display; raises NotFound for unknown products/variants
        entry = reader.lookup(command.product_id, command.variant_id)

        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        item = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            unit_price_snapshot=to_str(entry.effective_price(datetime.now(UTC))),
        )
        repo.add(cart)
        return str(item.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)

"""Product aggregate root with Variant entities.

Only the parts of the catalogue the checkout pipeline reads are modelled
here: prices, sale prices and stock. The pipeline never changes anything on a
product except its stock quantity.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Integer, String

from storefront.catalogue.events import BackorderPlaced, StockReleased, StockReserved
from storefront.domain import storefront
from storefront.pricing.money import to_decimal, to_str


class BackorderPolicy(Enum):
    NO = "no"
    NOTIFY = "notify"
    ALLOW = "allow"


def _accepts_backorders(policy) -> bool:
    return BackorderPolicy(policy) in (BackorderPolicy.ALLOW, BackorderPolicy.NOTIFY)


def _check_sale_price(sku, price, sale_price):
    if sale_price and to_decimal(sale_price) >= to_decimal(price):
        raise ValidationError({"sale_price": [f"Sale price of {sku} must be lower than its price"]})


def _check_stock_floor(sku, manage_stock, stock_quantity, backorders):
    if manage_stock and stock_quantity < 0 and not _accepts_backorders(backorders):
        raise ValidationError({"stock_quantity": [f"Stock of {sku} cannot go below zero without backorders"]})


@storefront.entity(part_of="Product")
class Variant:
    """A purchasable variant. Price fields left empty fall back to the product's."""

    sku = String(required=True, max_length=64)
    name = String(max_length=255)
    price = String(max_length=20)
    sale_price = String(max_length=20)
    manage_stock = Boolean(default=True)
    stock_quantity = Integer(default=0)
    backorders = String(choices=BackorderPolicy, default=BackorderPolicy.NO.value)


@storefront.aggregate
class Product:
    sku = String(required=True, max_length=64)
    name = String(required=True, max_length=255)
    price = String(required=True, max_length=20)
    sale_price = String(max_length=20)
    sale_starts_at = DateTime()
    sale_ends_at = DateTime()
    manage_stock = Boolean(default=True)
    stock_quantity = Integer(default=0)
    backorders = String(choices=BackorderPolicy, default=BackorderPolicy.NO.value)
    variants = HasMany(Variant)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def sale_price_must_be_below_price(self):
        _check_sale_price(self.sku, self.price, self.sale_price)
        for variant in self.variants:
            _check_sale_price(variant.sku, variant.price or self.price, variant.sale_price)

    @invariant.post
    def stock_cannot_go_negative_without_backorders(self):
        _check_stock_floor(self.sku, self.manage_stock, self.stock_quantity, self.backorders)
        for variant in self.variants:
            _check_stock_floor(variant.sku, variant.manage_stock, variant.stock_quantity, variant.backorders)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        sku,
        name,
        price,
        sale_price=None,
        stock_quantity=0,
        manage_stock=True,
        backorders=BackorderPolicy.NO.value,
        sale_starts_at=None,
        sale_ends_at=None,
    ):
        now = datetime.now(UTC)
        return cls(
            sku=sku,
            name=name,
            price=to_str(price),
            sale_price=to_str(sale_price) if sale_price is not None else None,
            sale_starts_at=sale_starts_at,
            sale_ends_at=sale_ends_at,
            stock_quantity=stock_quantity,
            manage_stock=manage_stock,
            backorders=backorders,
            created_at=now,
            updated_at=now,
        )

    def add_variant(
        self,
        sku,
        name=None,
        price=None,
        sale_price=None,
        stock_quantity=0,
        manage_stock=True,
        backorders=BackorderPolicy.NO.value,
    ):
        variant = Variant(
            sku=sku,
            name=name,
            price=to_str(price) if price is not None else None,
            sale_price=to_str(sale_price) if sale_price is not None else None,
            stock_quantity=stock_quantity,
            manage_stock=manage_stock,
            backorders=backorders,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def stock_holder(self, variant_id=None):
        """Return the object whose stock a line consumes: the variant if given, else the product."""
        if variant_id is None:
            return self

        variant = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if variant is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} does not belong to product {self.sku}"]})
        return variant

    def can_supply(self, variant_id, quantity) -> bool:
        holder = self.stock_holder(variant_id)
        if not holder.manage_stock or _accepts_backorders(holder.backorders):
            return True
        return holder.stock_quantity - quantity >= 0

    def decrement_stock(self, variant_id, quantity):
        """Take ``quantity`` units out of stock. Items that do not manage stock are left untouched."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        holder = self.stock_holder(variant_id)
        if not holder.manage_stock:
            return

        now = datetime.now(UTC)
        with atomic_change(self):
            holder.stock_quantity -= quantity
            self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                sku=holder.sku,
                quantity=quantity,
                remaining=holder.stock_quantity,
                reserved_at=now,
            )
        )

        if holder.stock_quantity < 0 and BackorderPolicy(holder.backorders) == BackorderPolicy.NOTIFY:
            self.raise_(
                BackorderPlaced(
                    product_id=str(self.id),
                    variant_id=str(variant_id) if variant_id else None,
                    sku=holder.sku,
                    quantity=quantity,
                    stock_quantity=holder.stock_quantity,
                    placed_at=now,
                )
            )

    def restore_stock(self, variant_id, quantity):
        """Put ``quantity`` units back into stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        holder = self.stock_holder(variant_id)
        if not holder.manage_stock:
            return

        now = datetime.now(UTC)
        holder.stock_quantity += quantity
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                sku=holder.sku,
                quantity=quantity,
                remaining=holder.stock_quantity,
                released_at=now,
            )
        )

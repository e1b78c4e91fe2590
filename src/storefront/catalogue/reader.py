"""Read side of the catalogue used by checkout: live price and stock snapshots."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.errors import NotFound
from storefront.pricing.money import to_decimal


@dataclass(frozen=True)
class CatalogueEntry:
    """Immutable view of one purchasable item (a product or one of its variants)."""

    product_id: str
    variant_id: str | None
    sku: str
    name: str
    price: Decimal
    sale_price: Decimal | None
    sale_starts_at: datetime | None
    sale_ends_at: datetime | None
    manage_stock: bool
    stock_quantity: int
    backorders: str

    def sale_active(self, now: datetime) -> bool:
        if self.sale_price is None:
            return False
        if self.sale_starts_at and now < self.sale_starts_at:
            return False
        if self.sale_ends_at and now > self.sale_ends_at:
            return False
        return True

    def effective_price(self, now: datetime) -> Decimal:
        return self.sale_price if self.sale_active(now) else self.price


def _load(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(str(product_id))
    except ObjectNotFoundError:
        raise NotFound("Product", str(product_id)) from None


def get_product(product_id) -> CatalogueEntry:
    product = _load(product_id)
    return CatalogueEntry(
        product_id=str(product.id),
        variant_id=None,
        sku=product.sku,
        name=product.name,
        price=to_decimal(product.price),
        sale_price=to_decimal(product.sale_price) if product.sale_price else None,
        sale_starts_at=product.sale_starts_at,
        sale_ends_at=product.sale_ends_at,
        manage_stock=product.manage_stock,
        stock_quantity=product.stock_quantity,
        backorders=product.backorders,
    )


def get_variant(product_id, variant_id) -> CatalogueEntry:
    product = _load(product_id)
    variant = next((v for v in product.variants if str(v.id) == str(variant_id)), None)
    if variant is None:
        raise NotFound("Variant", str(variant_id))

    # A variant without its own price sells at the product's price and sale
    if variant.price:
        price = to_decimal(variant.price)
        sale_price = to_decimal(variant.sale_price) if variant.sale_price else None
    else:
        price = to_decimal(product.price)
        inherited_sale = variant.sale_price or product.sale_price
        sale_price = to_decimal(inherited_sale) if inherited_sale else None

    return CatalogueEntry(
        product_id=str(product.id),
        variant_id=str(variant.id),
        sku=variant.sku,
        name=f"{product.name} - {variant.name}" if variant.name else product.name,
        price=price,
        sale_price=sale_price,
        sale_starts_at=product.sale_starts_at,
        sale_ends_at=product.sale_ends_at,
        manage_stock=variant.manage_stock,
        stock_quantity=variant.stock_quantity,
        backorders=variant.backorders,
    )


def lookup(product_id, variant_id=None) -> CatalogueEntry:
    if variant_id:
        return get_variant(product_id, variant_id)
    return get_product(product_id)

"""Query methods for the Order aggregate."""

from storefront.domain import storefront
from storefront.order.order import Order


@storefront.repository(part_of=Order)
class OrderRepository:
    def list_orders(self, customer_id=None, status=None, limit=50, offset=0) -> list[Order]:
        """Orders newest first, optionally for one customer and in one status."""
        filters = {}
        if customer_id:
            filters["customer_id"] = str(customer_id)
        if status:
            filters["status"] = status
        query = self._dao.query.filter(**filters) if filters else self._dao.query
        orders = sorted(query.all().items, key=lambda o: o.created_at, reverse=True)
        return orders[offset : offset + limit]

"""Repository for the Cart aggregate."""

from datetime import datetime

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.utils.dates import as_utc


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_customer(self, customer_id) -> Cart | None:
        """The customer's cart, if one has been created."""
        carts = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return carts[0] if carts else None

    def abandonment_candidates(self, cutoff: datetime) -> list[Cart]:
        """Active carts with lines, not modified since ``cutoff``."""
        carts = self._dao.query.filter(is_abandoned=False).all().items
        return [cart for cart in carts if cart.items and as_utc(cart.last_modified) < cutoff]

    def stale_empty(self, cutoff: datetime) -> list[Cart]:
        """Empty carts untouched since ``cutoff``."""
        carts = self._dao.query.filter(total_items=0).all().items
        return [cart for cart in carts if not cart.items and as_utc(cart.last_modified) < cutoff]

    def purge(self, cart: Cart) -> None:
        self._dao.delete(cart)

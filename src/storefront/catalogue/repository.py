"""Repository for the Product aggregate."""

from protean.exceptions import ObjectNotFoundError

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import ProductNotFound


@storefront.repository(part_of=Product)
class ProductRepository:
    def require(self, product_id) -> Product:
        """Load a product or raise ``ProductNotFound``."""
        try:
            return self.get(str(product_id))
        except ObjectNotFoundError as exc:
            raise ProductNotFound(product_id) from exc

    def find_by_sku(self, sku: str) -> Product | None:
        matches = self._dao.query.filter(sku=sku.strip().upper()).all().items
        return matches[0] if matches else None

    def find_many(self, product_ids) -> dict[str, Product]:
        """Products keyed by id; ids with no product are simply absent."""
        found = {}
        for product_id in {str(pid) for pid in product_ids}:
            try:
                found[product_id] = self.get(product_id)
            except ObjectNotFoundError:
                continue
        return found

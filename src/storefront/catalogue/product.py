"""Product aggregate: the catalogue record checkout validates carts against.

Available stock is not an attribute of the product. It lives in the stock
ledger under the product's id; the product only carries the low-stock
threshold the ledger is registered with.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from storefront.catalogue.events import (
    ProductActivated,
    ProductCreated,
    ProductDeactivated,
    ProductPriceChanged,
    ProductSold,
)
from storefront.domain import storefront
from storefront.utils.money import round_money


@storefront.aggregate
class Product:
    title = String(required=True, max_length=200)
    description = Text()
    sku = String(required=True, max_length=64)
    brand = String(max_length=100)
    image_url = String(max_length=500)
    price = Float(required=True, min_value=0.0)
    is_active = Boolean(default=True)
    low_stock_threshold = Integer(default=10, min_value=0)
    purchases = Integer(default=0)
    revenue = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        title,
        sku,
        price,
        description=None,
        brand=None,
        image_url=None,
        low_stock_threshold=10,
    ):
        now = datetime.now(UTC)
        product = cls(
            title=title,
            sku=sku.strip().upper(),
            price=round_money(price),
            description=description,
            brand=brand,
            image_url=image_url,
            low_stock_threshold=low_stock_threshold,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductCreated(
                product_id=str(product.id),
                sku=product.sku,
                title=product.title,
                price=product.price,
                created_at=now,
            )
        )
        return product

    def change_price(self, new_price):
        if new_price is None or new_price < 0:
            raise ValidationError({"price": ["Price must be zero or positive"]})

        previous_price = self.price
        self.price = round_money(new_price)
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            ProductPriceChanged(
                product_id=str(self.id),
                previous_price=previous_price,
                new_price=self.price,
                changed_at=now,
            )
        )

    def activate(self):
        if self.is_active:
            return
        self.is_active = True
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(ProductActivated(product_id=str(self.id), activated_at=now))

    def deactivate(self):
        if not self.is_active:
            return
        self.is_active = False
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(ProductDeactivated(product_id=str(self.id), deactivated_at=now))

    def record_sale(self, quantity, amount):
        """Count delivered units towards the purchase and revenue analytics."""
        self.purchases = (self.purchases or 0) + quantity
        self.revenue = round_money((self.revenue or 0.0) + amount)
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ProductSold(
                product_id=str(self.id),
                quantity=quantity,
                amount=amount,
                sold_at=now,
            )
        )

"""Cart aggregate: one per customer, the source snapshot for an order.

Line totals and the cart's ``total_items``/``total_amount`` are caches;
every mutation recomputes them from the lines. A cart is never deleted
after checkout, only cleared, and any mutation of an abandoned cart makes
it active again.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, Text

from storefront.cart.events import (
    CartAbandoned,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from storefront.domain import storefront
from storefront.errors import ItemNotFound
from storefront.utils.money import round_money

MAX_LINE_QUANTITY = 99


class FlagAction(Enum):
    REMOVE = "remove"
    UPDATE_QUANTITY = "update_quantity"
    UPDATE_PRICE = "update_price"


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1, max_value=MAX_LINE_QUANTITY)
    price = Float(required=True, min_value=0.0)
    line_total = Float(default=0.0)
    variants = Text()  # JSON: list of {name, value, price}
    added_at = DateTime()

    @property
    def selected_variants(self) -> list[dict]:
        return json.loads(self.variants) if self.variants else []


def _check_quantity(quantity):
    if quantity > MAX_LINE_QUANTITY:
        raise ValidationError({"quantity": [f"Quantity cannot exceed {MAX_LINE_QUANTITY}"]})


@storefront.aggregate
class Cart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    total_items = Integer(default=0)
    total_amount = Float(default=0.0)
    is_abandoned = Boolean(default=False)
    abandoned_at = DateTime()
    created_at = DateTime()
    last_modified = DateTime()

    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, created_at=now, last_modified=now)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def item_for(self, product_id) -> CartItem | None:
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def _touch(self):
        """Recompute the cached totals and reactivate the cart."""
        for item in self.items:
            item.line_total = round_money(item.price * item.quantity)
        self.total_items = sum(item.quantity for item in self.items)
        self.total_amount = round_money(sum(item.line_total for item in self.items))
        self.last_modified = datetime.now(UTC)
        if self.is_abandoned:
            self.is_abandoned = False
            self.abandoned_at = None

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price, variants=None):
        """Add a line, or increase the quantity of the existing line for the product.

        Stock is not checked here; checkout validates against the ledger.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.item_for(product_id)
        if existing:
            _check_quantity(existing.quantity + quantity)
            existing.quantity += quantity
            existing.added_at = now
        else:
            _check_quantity(quantity)
            self.add_items(
                CartItem(
                    product_id=product_id,
                    quantity=quantity,
                    price=round_money(unit_price),
                    variants=json.dumps(variants or []),
                    added_at=now,
                )
            )
        self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
                quantity=quantity,
                unit_price=round_money(unit_price),
            )
        )

    def update_item_quantity(self, product_id, quantity):
        """Set a line's quantity; zero or less removes the line."""
        item = self.item_for(product_id)
        if item is None:
            raise ItemNotFound(product_id)

        if quantity <= 0:
            self.remove_item(product_id)
            return

        _check_quantity(quantity)
        previous_quantity = item.quantity
        item.quantity = quantity
        item.added_at = datetime.now(UTC)
        self._touch()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, product_id):
        item = self.item_for(product_id)
        if item is None:
            raise ItemNotFound(product_id)

        self.remove_items(item)
        self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), product_id=str(product_id)))

    def clear(self):
        for item in list(self.items):
            self.remove_items(item)
        self._touch()

        self.raise_(CartCleared(cart_id=str(self.id), customer_id=str(self.customer_id)))

    # -------------------------------------------------------------------
    # Validation against the live catalogue
    # -------------------------------------------------------------------
    def validate_items(self, products: dict, stock: dict) -> list[dict]:
        """Compare each line with the live product and its available stock.

        ``products`` maps product id to Product (missing ids mean deleted
        products); ``stock`` maps product id to available quantity. Returns
        one flag per line that needs attention, in line order. Pure: the cart
        is not modified.
        """
        flags = []
        for item in self.items:
            product_id = str(item.product_id)
            product = products.get(product_id)

            if product is None:
                flags.append({"product_id": product_id, "action": FlagAction.REMOVE.value, "reason": "Product not found"})
                continue

            if not product.is_active:
                flags.append(
                    {
                        "product_id": product_id,
                        "action": FlagAction.REMOVE.value,
                        "reason": "Product no longer available",
                    }
                )
                continue

            available = stock.get(product_id, 0)
            if available <= 0:
                flags.append({"product_id": product_id, "action": FlagAction.REMOVE.value, "reason": "Out of stock"})
                continue

            if available < item.quantity:
                flags.append(
                    {
                        "product_id": product_id,
                        "action": FlagAction.UPDATE_QUANTITY.value,
                        "reason": f"Only {available} items in stock",
                        "available_stock": available,
                    }
                )
                continue

            if round_money(product.price) != round_money(item.price):
                flags.append(
                    {
                        "product_id": product_id,
                        "action": FlagAction.UPDATE_PRICE.value,
                        "reason": "Price has changed",
                        "old_price": item.price,
                        "new_price": product.price,
                    }
                )
        return flags

    def apply_validation(self, flags: list[dict]):
        """Correct the cart as the flags from ``validate_items`` describe."""
        for flag in flags:
            action = FlagAction(flag["action"])
            if self.item_for(flag["product_id"]) is None:
                continue

            if action == FlagAction.REMOVE:
                self.remove_item(flag["product_id"])
            elif action == FlagAction.UPDATE_QUANTITY:
                self.update_item_quantity(flag["product_id"], flag["available_stock"])
            else:
                self.item_for(flag["product_id"]).price = round_money(flag["new_price"])
                self._touch()

    # -------------------------------------------------------------------
    # Abandonment
    # -------------------------------------------------------------------
    def mark_abandoned(self):
        if self.is_abandoned:
            return

        now = datetime.now(UTC)
        self.is_abandoned = True
        self.abandoned_at = now

        self.raise_(
            CartAbandoned(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                total_items=self.total_items,
                total_amount=self.total_amount,
                abandoned_at=now,
            )
        )

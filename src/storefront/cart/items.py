"""Cart line management: commands and handler.

The cart is created lazily by the first ``AddToCart`` for a customer.
Quantities and prices are not checked against stock here; checkout does
that.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import MAX_LINE_QUANTITY, Cart
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import EmptyCart, ItemNotFound, ProductInactive
from storefront.inventory import get_stock_ledger
from storefront.inventory.port import StockLedger


@storefront.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1, max_value=MAX_LINE_QUANTITY)
    variants = Text()  # JSON: list of {name, value, price}


@storefront.command(part_of="Cart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, max_value=MAX_LINE_QUANTITY)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class RefreshCart:
    """Validate the cart against the catalogue and correct what drifted."""

    customer_id = Identifier(required=True)


def require_cart(customer_id) -> Cart:
    cart = current_domain.repository_for(Cart).for_customer(customer_id)
    if cart is None:
        raise EmptyCart(customer_id)
    return cart


def validate_cart(cart: Cart, ledger: StockLedger) -> list[dict]:
    """Run ``Cart.validate_items`` against live products and ``ledger`` stock."""
    product_ids = [str(item.product_id) for item in cart.items]
    products = current_domain.repository_for(Product).find_many(product_ids)
    stock = {product_id: ledger.available(product_id) for product_id in product_ids}
    return cart.validate_items(products, stock)


@storefront.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = current_domain.repository_for(Product).require(command.product_id)
        if not product.is_active:
            raise ProductInactive(command.product_id)

        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id) or Cart.create(command.customer_id)
        cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity,
            unit_price=product.price,
            variants=json.loads(command.variants) if command.variants else None,
        )
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = current_domain.repository_for(Cart).for_customer(command.customer_id)
        if cart is None:
            raise ItemNotFound(command.product_id)
        cart.update_item_quantity(command.product_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = current_domain.repository_for(Cart).for_customer(command.customer_id)
        if cart is None:
            raise ItemNotFound(command.product_id)
        cart.remove_item(command.product_id)
        current_domain.repository_for(Cart).add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)
        if cart is None:
            return
        cart.clear()
        repo.add(cart)

    @handle(RefreshCart)
    def refresh_cart(self, command):
        cart = require_cart(command.customer_id)
        flags = validate_cart(cart, get_stock_ledger())
        if flags:
            cart.apply_validation(flags)
            current_domain.repository_for(Cart).add(cart)
        return flags

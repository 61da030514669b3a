"""Checkout pricing: shipping, tax and the order pricing snapshot.

Amounts are computed in ``Decimal`` and only turned into floats when the
``OrderPricing`` value object is built.
"""

from decimal import Decimal

from storefront.cart.cart import Cart
from storefront.config import CheckoutSettings
from storefront.order.order import OrderPricing
from storefront.utils.money import round_money, round_whole, to_decimal


def shipping_cost(subtotal, total_quantity: int, settings: CheckoutSettings) -> Decimal:
    """Free above the threshold, otherwise a base fee plus a per-item fee, capped."""
    if to_decimal(subtotal) >= settings.free_shipping_threshold:
        return Decimal("0")
    fee = settings.base_shipping_fee + settings.per_item_shipping_fee * total_quantity
    return min(fee, settings.max_shipping_fee)


def tax_amount(subtotal, settings: CheckoutSettings) -> Decimal:
    return to_decimal(round_whole(to_decimal(subtotal) * settings.tax_rate))


def price_cart(cart: Cart, settings: CheckoutSettings) -> OrderPricing:
    subtotal = to_decimal(round_money(sum(to_decimal(item.line_total) for item in cart.items)))
    total_quantity = sum(item.quantity for item in cart.items)
    return OrderPricing.build(
        subtotal=subtotal,
        tax=tax_amount(subtotal, settings),
        shipping=shipping_cost(subtotal, total_quantity, settings),
        currency=settings.currency,
    )

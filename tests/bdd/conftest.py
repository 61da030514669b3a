"""Shared BDD fixtures and step definitions for checkout and the order lifecycle."""

from decimal import Decimal

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from storefront.cart.cart import Cart
from storefront.config import CheckoutSettings, set_settings
from storefront.errors import StorefrontError
from storefront.order.order import Order


@pytest.fixture()
def world():
    """What the scenario has set up so far, and what the last step produced."""
    return {"products": {}, "customer_id": None, "order_id": None, "error": None}


@pytest.fixture()
def capture(world):
    """Run an action, keeping a raised storefront error for the Then steps."""

    def _capture(action):
        try:
            return action()
        except StorefrontError as exc:
            world["error"] = exc
            return None

    return _capture


@pytest.fixture()
def current_order(world):
    def _current_order() -> Order:
        return current_domain.repository_for(Order).get(world["order_id"])

    return _current_order


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a registered customer")
def _(world, make_customer):
    world["customer_id"] = make_customer()


@given(parsers.parse('a product "{name}" priced {price:g} with {stock:d} in stock'))
def _(world, make_product, name, price, stock):
    world["products"][name] = make_product(price=price, stock=stock, title=name)


@given(parsers.parse('the customer has {quantity:d} of "{name}" in the cart'))
def _(world, add_to_cart, quantity, name):
    add_to_cart(world["customer_id"], world["products"][name], quantity)


@given(parsers.parse("shipping is a flat {fee:d} below {threshold:d} and tax is {rate:d}%"))
def _(adapters, fee, threshold, rate):
    set_settings(
        CheckoutSettings(
            free_shipping_threshold=Decimal(threshold),
            base_shipping_fee=Decimal(fee),
            per_item_shipping_fee=Decimal("0"),
            tax_rate=Decimal(rate) / 100,
        )
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('checkout fails with "{code}"'))
@then(parsers.parse('the request fails with "{code}"'))
def _(world, code):
    assert world["error"] is not None
    assert world["error"].code == code


@then(parsers.parse('the stock of "{name}" is {stock:d}'))
def _(world, ledger, name, stock):
    assert ledger.available(world["products"][name]) == stock


@then(parsers.parse('the order status is "{status}"'))
def _(current_order, status):
    assert current_order().status == status


@then("the customer's cart is empty")
def _(world):
    assert current_domain.repository_for(Cart).for_customer(world["customer_id"]).is_empty


@then(parsers.parse('a "{kind}" notification was sent'))
def _(notifier, kind):
    assert kind in notifier.kinds()

"""BDD tests for checkout."""

from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

from storefront.checkout.workflow import RESERVATION_FAILED_REASON, CheckoutService
from storefront.order.order import Order, OrderStatus

scenarios("features/checkout.feature")


class _RacingLedger:
    """Places the other customer's order just before this checkout reserves stock."""

    def __init__(self, ledger, place_competitor):
        self._ledger = ledger
        self._place_competitor = place_competitor
        self.competitor_order = None

    def __getattr__(self, name):
        return getattr(self._ledger, name)

    def reserve_all(self, lines):
        if self.competitor_order is None:
            self.competitor_order = self._place_competitor()
        return self._ledger.reserve_all(lines)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.parse('another customer also has {quantity:d} of "{name}" in the cart'))
def _(world, make_customer, add_to_cart, quantity, name):
    world["other_customer_id"] = make_customer(first_name="Ravi", last_name="Menon")
    add_to_cart(world["other_customer_id"], world["products"][name], quantity)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.parse('the customer checks out paying by "{method}"'))
def _(world, capture, shipping_address, method):
    order = capture(lambda: CheckoutService().place_order(world["customer_id"], shipping_address, method))
    if order is not None:
        world["order_id"] = str(order.id)


@when("both customers check out for the last unit at the same time")
def _(world, capture, ledger, shipping_address):
    racing = _RacingLedger(
        ledger,
        lambda: CheckoutService(ledger=ledger).place_order(world["other_customer_id"], shipping_address, "cod"),
    )
    world["racing"] = racing
    capture(lambda: CheckoutService(ledger=racing).place_order(world["customer_id"], shipping_address, "razorpay"))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('"{name}" is flagged for "{action}"'))
def _(world, name, action):
    product_id = world["products"][name]
    [flag] = [flag for flag in world["error"].flags if flag["product_id"] == product_id]
    assert flag["action"] == action


@then(
    parsers.parse(
        "the order is priced at subtotal {subtotal:g}, shipping {shipping:g}, tax {tax:g} and total {total:g}"
    )
)
def _(current_order, subtotal, shipping, tax, total):
    pricing = current_order().pricing
    assert (pricing.subtotal, pricing.shipping, pricing.tax, pricing.total) == (subtotal, shipping, tax, total)


@then("the other customer's order is placed")
def _(world):
    order = world["racing"].competitor_order
    assert order is not None
    assert order.status == OrderStatus.CONFIRMED.value


@then("the customer's failed order is cancelled")
def _(world):
    order = current_domain.repository_for(Order).get(world["error"].order_id)
    assert order.status == OrderStatus.CANCELLED.value
    assert order.cancellation.reason == RESERVATION_FAILED_REASON

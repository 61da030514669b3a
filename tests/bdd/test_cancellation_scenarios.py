"""BDD tests for order cancellation and stock release."""

from pytest_bdd import given, parsers, scenarios, then, when

from storefront.checkout.lifecycle import OrderLifecycleService
from storefront.checkout.workflow import CheckoutService

scenarios("features/order_cancellation.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.parse('a placed order for {first:d} of "{first_name}" and {second:d} of "{second_name}" paid by "{method}"')
)
def _(world, add_to_cart, shipping_address, first, first_name, second, second_name, method):
    add_to_cart(world["customer_id"], world["products"][first_name], first)
    add_to_cart(world["customer_id"], world["products"][second_name], second)
    order = CheckoutService().place_order(world["customer_id"], shipping_address, method)
    world["order_id"] = str(order.id)


@given("the order is processing")
def _(world, current_order):
    service = OrderLifecycleService()
    if current_order().status == "pending":
        service.update_status(world["order_id"], "confirmed")
    service.update_status(world["order_id"], "processing")


@given(parsers.parse('the order has shipped with tracking "{tracking_number}"'))
def _(world, tracking_number):
    OrderLifecycleService().add_tracking(world["order_id"], "Delhivery", tracking_number)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.parse('the order is cancelled with reason "{reason}"'))
def _(world, capture, reason):
    capture(lambda: OrderLifecycleService().cancel_order(world["order_id"], reason, actor_id=world["customer_id"]))


@when(parsers.parse('the payment fails with reason "{reason}"'))
def _(world, capture, reason):
    capture(lambda: OrderLifecycleService().record_payment_failure(world["order_id"], reason))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('the cancellation reason is "{reason}"'))
def _(current_order, reason):
    assert current_order().cancellation.reason == reason

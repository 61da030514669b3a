"""Domain events for the Order aggregate.

Events are immutable facts about an order's lifecycle. Nothing inside the
storefront consumes them yet; they are recorded in the event store for
audit and downstream integration.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order was created from a customer's cart at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, price}
    payment_method = String(required=True)
    total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = String()
    actor_id = Identifier()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String()
    refund_status = String(required=True)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class TrackingAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    provider = String(required=True)
    tracking_number = String(required=True)
    tracking_url = String(required=True)


@storefront.event(part_of="Order")
class ReturnRequested:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, reason}
    requested_at = DateTime(required=True)


@storefront.event(part_of="Order")
class ReturnResolved:
    """A pending return was approved or rejected, or an approved one completed."""

    __version__ = 1

    order_id = Identifier(required=True)
    decision = String(required=True)
    actor_id = Identifier()
    resolved_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = Float(required=True)


@storefront.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()


@storefront.event(part_of="Order")
class RefundRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    refunded_total = Float(required=True)
    payment_status = String(required=True)


@storefront.event(part_of="Order")
class StockReleased:
    """The order's stock reservation went back to the ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    lines = Integer(required=True)
    released_at = DateTime(required=True)

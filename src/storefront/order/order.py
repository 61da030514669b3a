"""Order aggregate: an immutable purchase snapshot with a mutable lifecycle.

Items, pricing and the shipping address are copied from the cart and the
catalogue at checkout and never follow later product changes. What does
change is the status, recorded in an append-only history, along with the
tracking, cancellation, return and payment bookkeeping.

State machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED (from PENDING, CONFIRMED, PROCESSING) → REFUNDED
    Paid orders in any other state reach REFUNDED only through ``record_refund``.

The order's stock reservation is tracked as one unit in
``reservation_status`` so that it is released or consumed at most once.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.errors import (
    DuplicateReturnRequest,
    IllegalStatusTransition,
    ReturnWindowExpired,
)
from storefront.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentFailed,
    PaymentRecorded,
    RefundRecorded,
    ReturnRequested,
    ReturnResolved,
    StockReleased,
    TrackingAdded,
)
from storefront.utils.dates import as_utc
from storefront.utils.money import round_money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    RAZORPAY = "razorpay"
    COD = "cod"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class RefundStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ReturnStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ReservationStatus(Enum):
    RESERVED = "reserved"
    RELEASED = "released"
    CONSUMED = "consumed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}

_MILESTONES = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PROCESSING: "processed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

# Return decisions allowed from each return status
_RETURN_DECISIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.COMPLETED},
    ReturnStatus.REJECTED: set(),
    ReturnStatus.COMPLETED: set(),
}

DEFAULT_RETURN_WINDOW_DAYS = 30


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, as entered at checkout."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    street = String(required=True, max_length=255)
    apartment = String(max_length=100)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Amounts locked at checkout; ``total`` is always derived from the parts."""

    subtotal = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="INR")

    @invariant.post
    def total_must_add_up(self):
        expected = round_money(self.subtotal + self.tax + self.shipping - self.discount)
        if abs(round_money(self.total) - expected) > 0.001:
            raise ValidationError({"total": [f"Total {self.total} does not equal {expected}"]})

    @classmethod
    def build(cls, subtotal, tax=0.0, shipping=0.0, discount=0.0, currency="INR"):
        subtotal, tax, shipping, discount = (round_money(v) for v in (subtotal, tax, shipping, discount))
        return cls(
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            total=round_money(subtotal + tax + shipping - discount),
            currency=currency,
        )


@storefront.value_object(part_of="Order")
class Tracking:
    provider = String(required=True, max_length=50)
    tracking_number = String(required=True, max_length=100)
    tracking_url = String(max_length=500)
    shipped_at = DateTime()
    delivered_at = DateTime()


@storefront.value_object(part_of="Order")
class Cancellation:
    reason = String(required=True, max_length=500)
    cancelled_at = DateTime(required=True)
    cancelled_by = String(max_length=100)
    refund_status = String(choices=RefundStatus, default=RefundStatus.NONE.value)


@storefront.value_object(part_of="Order")
class ReturnRequest:
    requested_at = DateTime(required=True)
    reason = String(required=True, max_length=500)
    status = String(choices=ReturnStatus, default=ReturnStatus.PENDING.value)
    items = Text()  # JSON: list of {product_id, quantity, reason}
    resolved_at = DateTime()
    resolved_by = String(max_length=100)

    @property
    def returned_items(self) -> list[dict]:
        return json.loads(self.items) if self.items else []


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """Snapshot of a purchased product line."""

    position = Integer(required=True, min_value=0)
    product_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)
    sku = String(max_length=64)
    brand = String(max_length=100)
    image_url = String(max_length=500)
    description = Text()
    variants = Text()  # JSON: list of {name, value, price}

    @property
    def selected_variants(self) -> list[dict]:
        return json.loads(self.variants) if self.variants else []


@storefront.entity(part_of="Order")
class StatusChange:
    position = Integer(required=True, min_value=0)
    status = String(required=True, choices=OrderStatus)
    changed_at = DateTime(required=True)
    note = String(max_length=500)
    actor_id = Identifier()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(ShippingAddress)
    shipping_method = String(max_length=50, default="standard")
    customer_notes = String(max_length=500)
    payment_method = String(choices=PaymentMethod, required=True)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_transaction_id = String(max_length=255)
    refund_amount = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusChange)
    confirmed_at = DateTime()
    processed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    tracking = ValueObject(Tracking)
    cancellation = ValueObject(Cancellation)
    return_request = ValueObject(ReturnRequest)
    reservation_status = String(choices=ReservationStatus)
    confirmation_sent = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        order_number,
        items,
        shipping_address,
        payment_method,
        pricing,
        shipping_method="standard",
        customer_notes=None,
        actor_id=None,
    ):
        """Create an order from checkout data.

        Args:
            items: List of dicts with product_id, title, price, quantity and
                optionally sku, brand, image_url, description, variants.
            shipping_address: A ShippingAddress or a dict of its fields.
            pricing: An OrderPricing built for these items.

        Cash-on-delivery orders start out confirmed; every other payment
        method waits for the payment to be recorded.
        """
        now = datetime.now(UTC)
        method = PaymentMethod(payment_method)
        initial_status = OrderStatus.CONFIRMED if method == PaymentMethod.COD else OrderStatus.PENDING

        if isinstance(shipping_address, dict):
            shipping_address = ShippingAddress(**shipping_address)

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            pricing=pricing,
            shipping_address=shipping_address,
            shipping_method=shipping_method or "standard",
            customer_notes=customer_notes,
            payment_method=method.value,
            status=initial_status.value,
            confirmed_at=now if initial_status == OrderStatus.CONFIRMED else None,
            created_at=now,
            updated_at=now,
        )
        for position, item in enumerate(items):
            order.add_items(
                OrderItem(
                    position=position,
                    product_id=item["product_id"],
                    title=item["title"],
                    price=round_money(item["price"]),
                    quantity=item["quantity"],
                    line_total=round_money(item["price"] * item["quantity"]),
                    sku=item.get("sku"),
                    brand=item.get("brand"),
                    image_url=item.get("image_url"),
                    description=item.get("description"),
                    variants=json.dumps(item.get("variants") or []),
                )
            )
        order._append_history(initial_status, "Order placed", actor_id, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {"product_id": str(i["product_id"]), "quantity": i["quantity"], "price": i["price"]}
                        for i in items
                    ]
                ),
                payment_method=method.value,
                total=order.pricing.total,
                currency=order.pricing.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def ordered_items(self) -> list[OrderItem]:
        return sorted(self.items, key=lambda item: item.position)

    @property
    def history(self) -> list[StatusChange]:
        return sorted(self.status_history, key=lambda change: change.position)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (PaymentStatus.PAID.value, PaymentStatus.PARTIALLY_REFUNDED.value)

    @property
    def holds_stock(self) -> bool:
        return self.reservation_status == ReservationStatus.RESERVED.value

    def reserved_lines(self) -> list[tuple[str, int]]:
        return [(str(item.product_id), item.quantity) for item in self.ordered_items]

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _append_history(self, status: OrderStatus, note, actor_id, when):
        self.add_status_history(
            StatusChange(
                position=len(self.status_history),
                status=status.value,
                changed_at=when,
                note=note,
                actor_id=actor_id,
            )
        )

    def _recalculate_pricing(self):
        subtotal = round_money(sum(item.line_total for item in self.items))
        self.pricing = OrderPricing.build(
            subtotal=subtotal,
            tax=self.pricing.tax,
            shipping=self.pricing.shipping,
            discount=self.pricing.discount,
            currency=self.pricing.currency,
        )

    # -------------------------------------------------------------------
    # Status lifecycle
    # -------------------------------------------------------------------
    def can_transition_to(self, status) -> bool:
        target = OrderStatus(status)
        return target in _VALID_TRANSITIONS[OrderStatus(self.status)]

    def can_be_cancelled(self) -> bool:
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    def can_be_returned(self, now=None, window_days=DEFAULT_RETURN_WINDOW_DAYS) -> bool:
        if OrderStatus(self.status) != OrderStatus.DELIVERED or self.delivered_at is None:
            return False
        now = now or datetime.now(UTC)
        return now - as_utc(self.delivered_at) <= timedelta(days=window_days)

    def update_status(self, new_status, note=None, actor_id=None):
        """Move to ``new_status`` and record it. Legality is the caller's concern."""
        target = OrderStatus(new_status)
        previous = self.status
        now = datetime.now(UTC)

        self.status = target.value
        self._append_history(target, note, actor_id, now)
        milestone = _MILESTONES.get(target)
        if milestone:
            setattr(self, milestone, now)
        self._recalculate_pricing()
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                note=note,
                actor_id=actor_id,
                changed_at=now,
            )
        )

    def cancel_order(self, reason, actor_id=None):
        if not self.can_be_cancelled():
            raise IllegalStatusTransition(
                self.status,
                OrderStatus.CANCELLED.value,
                f"Order cannot be cancelled once {self.status}",
            )

        now = datetime.now(UTC)
        refund_status = RefundStatus.PENDING if self.payment_status == PaymentStatus.PAID.value else RefundStatus.NONE
        self.cancellation = Cancellation(
            reason=reason,
            cancelled_at=now,
            cancelled_by=str(actor_id) if actor_id else None,
            refund_status=refund_status.value,
        )
        self.update_status(OrderStatus.CANCELLED, note=reason, actor_id=actor_id)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=str(actor_id) if actor_id else None,
                refund_status=refund_status.value,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def add_tracking(self, provider, tracking_number, tracking_url=None):
        """Attach carrier tracking; a processing order becomes shipped.

        Returns True when the order was moved to shipped.
        """
        if not provider or not tracking_number:
            raise ValidationError({"tracking": ["Provider and tracking number are required"]})

        url = tracking_url or f"https://track.{provider.lower()}.com/{tracking_number}"
        self.tracking = Tracking(
            provider=provider,
            tracking_number=tracking_number,
            tracking_url=url,
            shipped_at=datetime.now(UTC),
        )
        self.updated_at = datetime.now(UTC)

        self.raise_(
            TrackingAdded(
                order_id=str(self.id),
                provider=provider,
                tracking_number=tracking_number,
                tracking_url=url,
            )
        )

        if OrderStatus(self.status) == OrderStatus.PROCESSING:
            self.update_status(OrderStatus.SHIPPED, note=f"Shipped via {provider}")
            return True
        return False

    def record_delivery(self):
        """Stamp the tracking record once the order is delivered."""
        if self.tracking is None:
            return
        self.tracking = Tracking(
            provider=self.tracking.provider,
            tracking_number=self.tracking.tracking_number,
            tracking_url=self.tracking.tracking_url,
            shipped_at=self.tracking.shipped_at,
            delivered_at=self.delivered_at or datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def request_return(self, items, reason, now=None, window_days=DEFAULT_RETURN_WINDOW_DAYS):
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise IllegalStatusTransition(self.status, "return_requested", "Only delivered orders can be returned")
        if not self.can_be_returned(now=now, window_days=window_days):
            raise ReturnWindowExpired(self.id, window_days)
        if self.return_request is not None:
            raise DuplicateReturnRequest(self.id)

        ordered = {str(item.product_id): item.quantity for item in self.items}
        for line in items:
            product_id = str(line["product_id"])
            if product_id not in ordered:
                raise ValidationError({"items": [f"Product {product_id} is not part of this order"]})
            if not 1 <= line["quantity"] <= ordered[product_id]:
                raise ValidationError({"items": [f"Cannot return {line['quantity']} of product {product_id}"]})

        now = now or datetime.now(UTC)
        payload = json.dumps(
            [
                {"product_id": str(line["product_id"]), "quantity": line["quantity"], "reason": line.get("reason")}
                for line in items
            ]
        )
        self.return_request = ReturnRequest(requested_at=now, reason=reason, items=payload)
        self.updated_at = now

        self.raise_(ReturnRequested(order_id=str(self.id), reason=reason, items=payload, requested_at=now))

    def resolve_return(self, decision, actor_id=None):
        if self.return_request is None:
            raise ValidationError({"return": ["No return has been requested for this order"]})

        current = ReturnStatus(self.return_request.status)
        target = ReturnStatus(decision)
        if target not in _RETURN_DECISIONS[current]:
            raise IllegalStatusTransition(current.value, target.value, f"Cannot mark a {current.value} return {target.value}")

        now = datetime.now(UTC)
        self.return_request = ReturnRequest(
            requested_at=self.return_request.requested_at,
            reason=self.return_request.reason,
            status=target.value,
            items=self.return_request.items,
            resolved_at=now,
            resolved_by=str(actor_id) if actor_id else None,
        )
        self.updated_at = now

        self.raise_(
            ReturnResolved(
                order_id=str(self.id),
                decision=target.value,
                actor_id=actor_id,
                resolved_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment bookkeeping
    # -------------------------------------------------------------------
    def record_payment(self, transaction_id):
        """Mark the order paid; a pending order becomes confirmed.

        Returns True when the order was confirmed by this payment.
        """
        if self.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError({"payment_status": [f"Payment is already {self.payment_status}"]})

        self.payment_status = PaymentStatus.PAID.value
        self.payment_transaction_id = transaction_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentRecorded(
                order_id=str(self.id),
                transaction_id=transaction_id,
                amount=self.pricing.total,
            )
        )

        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.update_status(OrderStatus.CONFIRMED, note="Payment received")
            return True
        return False

    def record_payment_failure(self, reason=None):
        """Mark the payment failed and cancel the order if it still can be."""
        if self.is_paid:
            raise ValidationError({"payment_status": ["A paid order cannot record a payment failure"]})

        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(PaymentFailed(order_id=str(self.id), reason=reason))

        if self.can_be_cancelled():
            self.cancel_order(reason or "Payment failed", actor_id="system")

    def calculate_refund_amount(self, items=None) -> float:
        """Full order total, or the pro-rata value of the given ``{product_id, quantity}`` lines."""
        if not items:
            return self.pricing.total

        by_product = {str(item.product_id): item for item in self.items}
        amount = 0.0
        for line in items:
            item = by_product.get(str(line["product_id"]))
            if item:
                amount += (item.line_total / item.quantity) * line["quantity"]
        return round_money(amount)

    def record_refund(self, amount=None):
        """Refund ``amount`` (default: everything not yet refunded).

        A full refund marks the payment refunded and moves the order to
        refunded; anything less leaves the status alone.
        """
        if not self.is_paid:
            raise ValidationError({"payment_status": ["Only paid orders can be refunded"]})

        remaining = round_money(self.pricing.total - (self.refund_amount or 0.0))
        amount = remaining if amount is None else round_money(amount)
        if amount <= 0 or amount > remaining:
            raise ValidationError({"amount": [f"Refund amount must be between 0 and {remaining}"]})

        self.refund_amount = round_money((self.refund_amount or 0.0) + amount)
        fully_refunded = self.refund_amount >= self.pricing.total
        self.payment_status = (
            PaymentStatus.REFUNDED.value if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED.value
        )
        self.updated_at = datetime.now(UTC)

        if fully_refunded:
            if self.cancellation is not None:
                self.cancellation = Cancellation(
                    reason=self.cancellation.reason,
                    cancelled_at=self.cancellation.cancelled_at,
                    cancelled_by=self.cancellation.cancelled_by,
                    refund_status=RefundStatus.COMPLETED.value,
                )
            self.update_status(OrderStatus.REFUNDED, note=f"Refunded {self.refund_amount}")

        self.raise_(
            RefundRecorded(
                order_id=str(self.id),
                amount=amount,
                refunded_total=self.refund_amount,
                payment_status=self.payment_status,
            )
        )

    # -------------------------------------------------------------------
    # Reservation bookkeeping
    # -------------------------------------------------------------------
    def mark_stock_reserved(self):
        self.reservation_status = ReservationStatus.RESERVED.value

    def mark_stock_released(self) -> bool:
        """Record that the reservation went back to stock. False if it already had or was consumed."""
        if not self.holds_stock:
            return False
        now = datetime.now(UTC)
        self.reservation_status = ReservationStatus.RELEASED.value
        self.updated_at = now
        self.raise_(StockReleased(order_id=str(self.id), lines=len(self.items), released_at=now))
        return True

    def mark_stock_consumed(self) -> bool:
        if not self.holds_stock:
            return False
        self.reservation_status = ReservationStatus.CONSUMED.value
        return True

    def mark_confirmation_sent(self):
        self.confirmation_sent = True

"""Order notifications.

``OrderNotifier`` is what checkout and the lifecycle service talk to.
Delivery is fire-and-forget: the message is rendered from the order on the
calling thread, then handed to an executor (or sent inline when there is
none). Delivery failures are logged and never reach the caller.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Executor

import structlog

from storefront.notifications.email_port import EmailPort
from storefront.notifications.templates import ORDER_CONFIRMED, ORDER_SHIPPED, render

logger = structlog.get_logger(__name__)


def _order_context(customer, order) -> dict:
    return {
        "customer_name": customer.first_name if customer else None,
        "order_number": order.order_number,
        "items": [{"title": i.title, "quantity": i.quantity, "price": i.price} for i in order.ordered_items],
        "subtotal": order.pricing.subtotal,
        "shipping": order.pricing.shipping,
        "tax": order.pricing.tax,
        "total": order.pricing.total,
        "currency": order.pricing.currency,
    }


class OrderNotifier(ABC):
    @abstractmethod
    def order_confirmed(self, customer, order) -> None: ...

    @abstractmethod
    def order_shipped(self, customer, order) -> None: ...


class EmailOrderNotifier(OrderNotifier):
    def __init__(self, email: EmailPort, executor: Executor | None = None):
        self.email = email
        self.executor = executor

    def order_confirmed(self, customer, order) -> None:
        self._dispatch(ORDER_CONFIRMED, customer, order, _order_context(customer, order))

    def order_shipped(self, customer, order) -> None:
        context = _order_context(customer, order)
        if order.tracking:
            context.update(
                provider=order.tracking.provider,
                tracking_number=order.tracking.tracking_number,
                tracking_url=order.tracking.tracking_url,
            )
        self._dispatch(ORDER_SHIPPED, customer, order, context)

    def _dispatch(self, kind: str, customer, order, context: dict) -> None:
        if customer is None or not customer.email:
            logger.warning("No recipient for order notification", kind=kind, order_number=order.order_number)
            return

        message = render(kind, context)
        if self.executor is None:
            self._send(kind, customer.email, message, order.order_number)
        else:
            self.executor.submit(self._send, kind, customer.email, message, order.order_number)

    def _send(self, kind: str, to: str, message: dict, order_number: str) -> None:
        try:
            result = self.email.send(to=to, subject=message["subject"], body=message["body"])
        except Exception as exc:
            logger.error("Order notification failed", kind=kind, order_number=order_number, error=str(exc))
            return

        if result.get("status") != "sent":
            logger.warning(
                "Order notification not delivered",
                kind=kind,
                order_number=order_number,
                error=result.get("error"),
            )
            return
        logger.info("Order notification sent", kind=kind, order_number=order_number, message_id=result["message_id"])


class RecordingOrderNotifier(OrderNotifier):
    """Keeps (kind, customer_id, order_number) tuples; can be told to raise."""

    def __init__(self):
        self.sent: list[tuple[str, str | None, str]] = []
        self.fail_with: Exception | None = None

    def order_confirmed(self, customer, order) -> None:
        self._record(ORDER_CONFIRMED, customer, order)

    def order_shipped(self, customer, order) -> None:
        self._record(ORDER_SHIPPED, customer, order)

    def _record(self, kind, customer, order):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((kind, str(customer.id) if customer else None, order.order_number))

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]

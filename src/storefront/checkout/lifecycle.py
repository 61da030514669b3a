"""Order lifecycle after checkout: status changes, fulfilment, returns,
payment outcomes and refunds, plus the admin read queries.

The aggregate only records what happened; this service decides whether a
change is allowed and carries out the side effects each status implies:

    confirmed  → confirmation notification, at most once per order
    shipped    → requires tracking, consumes the stock reservation,
                 shipping notification
    delivered  → tracking delivery stamp, product purchase analytics
    cancelled  → stock reservation released, at most once per order
    refunded   → paid orders only, recorded as a full refund

Notifications and analytics are best effort and never fail the change
that triggered them.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.config import CheckoutSettings, get_settings
from storefront.customer.customer import Customer
from storefront.errors import IllegalStatusTransition, MissingTrackingInfo
from storefront.inventory import get_stock_ledger
from storefront.inventory.port import StockLedger
from storefront.notifications import get_notifier
from storefront.notifications.notifier import OrderNotifier
from storefront.order.order import Order, OrderStatus, ReturnStatus
from storefront.order.queries import OrderPage, OrderQuery

logger = structlog.get_logger(__name__)


def _order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError as exc:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from exc


class OrderLifecycleService:
    def __init__(
        self,
        ledger: StockLedger | None = None,
        notifier: OrderNotifier | None = None,
        settings: CheckoutSettings | None = None,
    ):
        self.ledger = ledger or get_stock_ledger()
        self.notifier = notifier or get_notifier()
        self.settings = settings or get_settings()

    @property
    def orders(self):
        return current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def update_status(self, order_id, status, note=None, actor_id=None) -> Order:
        target = _order_status(status)
        order = self.orders.require(order_id)

        if not order.can_transition_to(target):
            raise IllegalStatusTransition(order.status, target.value)
        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, note or "Cancelled by admin", actor_id=actor_id)
        if target == OrderStatus.REFUNDED:
            if not order.is_paid:
                raise IllegalStatusTransition(order.status, target.value, "Only paid orders can be refunded")
            return self.refund(order_id, actor_id=actor_id)
        if target == OrderStatus.SHIPPED and order.tracking is None:
            raise MissingTrackingInfo(order_id)

        order.update_status(target, note=note, actor_id=actor_id)
        send_confirmation = target == OrderStatus.CONFIRMED and not order.confirmation_sent
        if send_confirmation:
            order.mark_confirmation_sent()
        if target == OrderStatus.SHIPPED:
            order.mark_stock_consumed()
        if target == OrderStatus.DELIVERED:
            order.record_delivery()
        self.orders.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order_id),
            status=target.value,
            actor_id=actor_id,
        )

        if send_confirmation:
            self._notify(self.notifier.order_confirmed, order)
        if target == OrderStatus.SHIPPED:
            self._notify(self.notifier.order_shipped, order)
        if target == OrderStatus.DELIVERED:
            self._record_sales(order)
        return self.orders.get(str(order_id))

    def add_tracking(self, order_id, provider, tracking_number, tracking_url=None) -> Order:
        """Attach tracking; a processing order ships right away."""
        order = self.orders.require(order_id)
        if OrderStatus(order.status) in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise IllegalStatusTransition(order.status, OrderStatus.SHIPPED.value, "Cancelled orders cannot ship")

        shipped = order.add_tracking(provider, tracking_number, tracking_url)
        if shipped:
            order.mark_stock_consumed()
        self.orders.add(order)
        logger.info("Tracking added", order_id=str(order_id), provider=provider, shipped=shipped)

        if shipped:
            self._notify(self.notifier.order_shipped, order)
        return self.orders.get(str(order_id))

    def cancel_order(self, order_id, reason, actor_id=None, customer_id=None) -> Order:
        order = self.orders.require(order_id, customer_id=customer_id)
        order.cancel_order(reason, actor_id=actor_id)
        released = order.mark_stock_released()
        self.orders.add(order)

        if released:
            self._return_to_stock(order.reserved_lines(), order_id)
        logger.info("Order cancelled", order_id=str(order_id), reason=reason, stock_released=released)
        return self.orders.get(str(order_id))

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def request_return(self, order_id, items, reason, customer_id=None, now=None) -> Order:
        order = self.orders.require(order_id, customer_id=customer_id)
        order.request_return(
            items,
            reason,
            now=now or datetime.now(UTC),
            window_days=self.settings.return_window_days,
        )
        self.orders.add(order)
        logger.info("Return requested", order_id=str(order_id), lines=len(items))
        return self.orders.get(str(order_id))

    def resolve_return(self, order_id, decision, actor_id=None) -> Order:
        """Approve, reject or complete a return; completed returns go back to stock."""
        try:
            decision = ReturnStatus(decision)
        except ValueError as exc:
            raise ValidationError({"decision": [f"Unknown return decision: {decision}"]}) from exc

        order = self.orders.require(order_id)
        order.resolve_return(decision.value, actor_id=actor_id)
        self.orders.add(order)

        if decision == ReturnStatus.COMPLETED:
            returned = [(line["product_id"], line["quantity"]) for line in order.return_request.returned_items]
            self._return_to_stock(returned, order_id)
        logger.info("Return resolved", order_id=str(order_id), decision=decision.value, actor_id=actor_id)
        return self.orders.get(str(order_id))

    # -------------------------------------------------------------------
    # Payment outcomes
    # -------------------------------------------------------------------
    def record_payment(self, order_id, transaction_id) -> Order:
        order = self.orders.require(order_id)
        confirmed = order.record_payment(transaction_id)
        send_confirmation = confirmed and not order.confirmation_sent
        if send_confirmation:
            order.mark_confirmation_sent()
        self.orders.add(order)

        logger.info("Payment recorded", order_id=str(order_id), confirmed=confirmed)
        if send_confirmation:
            self._notify(self.notifier.order_confirmed, order)
        return self.orders.get(str(order_id))

    def record_payment_failure(self, order_id, reason=None) -> Order:
        """Mark the payment failed; the order is cancelled and its stock released once."""
        order = self.orders.require(order_id)
        order.record_payment_failure(reason)
        released = OrderStatus(order.status) == OrderStatus.CANCELLED and order.mark_stock_released()
        self.orders.add(order)

        if released:
            self._return_to_stock(order.reserved_lines(), order_id)
        logger.warning("Payment failed", order_id=str(order_id), reason=reason, stock_released=released)
        return self.orders.get(str(order_id))

    def refund(self, order_id, amount=None, actor_id=None) -> Order:
        order = self.orders.require(order_id)
        order.record_refund(amount)
        released = OrderStatus(order.status) == OrderStatus.REFUNDED and order.mark_stock_released()
        self.orders.add(order)

        if released:
            self._return_to_stock(order.reserved_lines(), order_id)
        logger.info(
            "Refund recorded",
            order_id=str(order_id),
            refunded_total=order.refund_amount,
            payment_status=order.payment_status,
            actor_id=actor_id,
        )
        return self.orders.get(str(order_id))

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id, customer_id=None) -> Order:
        return self.orders.require(order_id, customer_id=customer_id)

    def list_orders(self, query: OrderQuery) -> OrderPage:
        return self.orders.search(query)

    def statistics(self, start=None, end=None) -> dict:
        return self.orders.statistics(start, end)

    def recent_orders(self, limit: int = 10) -> list[Order]:
        return self.orders.recent(limit)

    def orders_requiring_action(self, now=None) -> list[Order]:
        return self.orders.requiring_action(
            now or datetime.now(UTC),
            pending_days=self.settings.stale_pending_days,
            processing_days=self.settings.stale_processing_days,
        )

    # -------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------
    def _return_to_stock(self, lines, order_id) -> None:
        for product_id, quantity in lines:
            self.ledger.release(str(product_id), quantity)
        logger.info("Stock returned", order_id=str(order_id), lines=len(lines))

    def _notify(self, send, order: Order) -> None:
        try:
            customer = current_domain.repository_for(Customer).find(order.customer_id)
            send(customer, order)
        except Exception as exc:
            logger.warning("Order notification failed", order_id=str(order.id), error=str(exc))

    def _record_sales(self, order: Order) -> None:
        repo = current_domain.repository_for(Product)
        for item in order.ordered_items:
            try:
                product = repo.require(item.product_id)
                product.record_sale(item.quantity, item.line_total)
                repo.add(product)
            except Exception as exc:
                logger.warning(
                    "Failed to record product sale",
                    order_id=str(order.id),
                    product_id=str(item.product_id),
                    error=str(exc),
                )

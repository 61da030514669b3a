"""Repository for the Order aggregate, including the admin read queries."""

from datetime import datetime, timedelta

from protean.exceptions import ObjectNotFoundError

from storefront.domain import storefront
from storefront.errors import OrderNotFound
from storefront.order.numbering.port import order_number_key
from storefront.order.order import Order, OrderStatus, ReturnStatus
from storefront.order.queries import OrderPage, OrderQuery
from storefront.utils.dates import as_utc
from storefront.utils.money import round_money

_BATCH_SIZE = 100


def _in_range(order: Order, start: datetime | None, end: datetime | None) -> bool:
    created_at = as_utc(order.created_at)
    if start and created_at < as_utc(start):
        return False
    if end and created_at > as_utc(end):
        return False
    return True


def _placement_key(order: Order):
    return as_utc(order.created_at), order_number_key(order.order_number)


def _matches_search(order: Order, term: str) -> bool:
    term = term.lower()
    candidates = [order.order_number]
    if order.shipping_address:
        candidates += [order.shipping_address.first_name, order.shipping_address.last_name]
    return any(term in (value or "").lower() for value in candidates)


@storefront.repository(part_of=Order)
class OrderRepository:
    def require(self, order_id, customer_id=None) -> Order:
        """Load an order, hiding orders owned by someone other than ``customer_id``."""
        try:
            order = self.get(str(order_id))
        except ObjectNotFoundError as exc:
            raise OrderNotFound(order_id) from exc
        if customer_id is not None and str(order.customer_id) != str(customer_id):
            raise OrderNotFound(order_id)
        return order

    def find_by_number(self, order_number: str) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def matching(self, **filters) -> list[Order]:
        """Every order matching the equality filters, read in batches."""
        orders, offset = [], 0
        while True:
            batch = self._dao.query.filter(**filters).order_by("created_at").offset(offset).limit(_BATCH_SIZE).all()
            orders.extend(batch.items)
            if len(batch.items) < _BATCH_SIZE:
                return orders
            offset += _BATCH_SIZE

    def search(self, query: OrderQuery) -> OrderPage:
        filters = {
            name: value
            for name, value in (
                ("customer_id", query.customer_id),
                ("status", query.status),
                ("payment_status", query.payment_status),
                ("payment_method", query.payment_method),
            )
            if value
        }
        orders = [
            order
            for order in self.matching(**{k: str(v) for k, v in filters.items()})
            if _in_range(order, query.created_from, query.created_to)
            and (not query.search or _matches_search(order, query.search))
        ]
        orders.sort(key=_placement_key, reverse=True)
        return OrderPage(
            items=orders[query.offset : query.offset + query.limit],
            total=len(orders),
            page=max(query.page, 1),
            limit=query.limit,
        )

    def recent(self, limit: int = 10) -> list[Order]:
        orders = sorted(self.matching(), key=_placement_key, reverse=True)
        return orders[:limit]

    def requiring_action(self, now: datetime, pending_days: int = 3, processing_days: int = 5) -> list[Order]:
        """Pending too long, processing too long, or awaiting a return decision."""
        pending_cutoff = now - timedelta(days=pending_days)
        processing_cutoff = now - timedelta(days=processing_days)

        flagged = {}
        for order in self.matching(status=OrderStatus.PENDING.value):
            if as_utc(order.created_at) < pending_cutoff:
                flagged[str(order.id)] = order
        for order in self.matching(status=OrderStatus.PROCESSING.value):
            if order.processed_at and as_utc(order.processed_at) < processing_cutoff:
                flagged[str(order.id)] = order
        for order in self.matching(status=OrderStatus.DELIVERED.value):
            if order.return_request and order.return_request.status == ReturnStatus.PENDING.value:
                flagged[str(order.id)] = order
        return sorted(flagged.values(), key=lambda order: as_utc(order.created_at))

    def statistics(self, start: datetime | None = None, end: datetime | None = None) -> dict:
        """Order count, revenue and item totals, split by status and payment method."""
        orders = [order for order in self.matching() if _in_range(order, start, end)]

        revenue = round_money(sum(order.pricing.total for order in orders))
        by_status: dict[str, int] = {}
        by_payment_method: dict[str, dict] = {}
        for order in orders:
            by_status[order.status] = by_status.get(order.status, 0) + 1
            bucket = by_payment_method.setdefault(order.payment_method, {"count": 0, "revenue": 0.0})
            bucket["count"] += 1
            bucket["revenue"] = round_money(bucket["revenue"] + order.pricing.total)

        return {
            "total_orders": len(orders),
            "total_revenue": revenue,
            "average_order_value": round_money(revenue / len(orders)) if orders else 0.0,
            "total_items": sum(order.total_quantity for order in orders),
            "by_status": by_status,
            "by_payment_method": by_payment_method,
        }

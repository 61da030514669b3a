"""Application tests for the admin order queries."""

from datetime import UTC, datetime, timedelta

from storefront.checkout.lifecycle import OrderLifecycleService
from storefront.order.queries import OrderQuery


class TestListOrders:
    def test_filter_by_status(self, place_order):
        pending = place_order()
        place_order(payment_method="cod")

        page = OrderLifecycleService().list_orders(OrderQuery(status="pending"))

        assert page.total == 1
        assert [str(order.id) for order in page.items] == [str(pending.id)]

    def test_filter_by_customer(self, place_order, make_customer):
        customer_id = make_customer()
        place_order(customer_id=customer_id)
        place_order()

        page = OrderLifecycleService().list_orders(OrderQuery(customer_id=customer_id))

        assert page.total == 1
        assert str(page.items[0].customer_id) == customer_id

    def test_search_by_order_number(self, place_order):
        place_order()
        target = place_order()

        page = OrderLifecycleService().list_orders(OrderQuery(search=target.order_number.lower()))

        assert [order.order_number for order in page.items] == [target.order_number]

    def test_search_by_recipient_name(self, place_order):
        place_order()
        assert OrderLifecycleService().list_orders(OrderQuery(search="rao")).total == 1
        assert OrderLifecycleService().list_orders(OrderQuery(search="smith")).total == 0

    def test_pagination_newest_first(self, place_order):
        placed = [place_order(payment_method="cod") for _ in range(3)]

        first = OrderLifecycleService().list_orders(OrderQuery(page=1, limit=2))
        second = OrderLifecycleService().list_orders(OrderQuery(page=2, limit=2))

        assert first.total == 3
        assert first.has_next and not first.has_prev
        assert second.has_prev and not second.has_next
        assert [o.order_number for o in first.items + second.items] == [o.order_number for o in reversed(placed)]

    def test_date_range(self, place_order):
        place_order()
        tomorrow = datetime.now(UTC) + timedelta(days=1)

        assert OrderLifecycleService().list_orders(OrderQuery(created_from=tomorrow)).total == 0
        assert OrderLifecycleService().list_orders(OrderQuery(created_to=tomorrow)).total == 1


class TestStatistics:
    def test_totals_and_breakdowns(self, place_order):
        first = place_order(lines=[(100.0, 2)])
        second = place_order(payment_method="cod", lines=[(50.0, 1)])

        stats = OrderLifecycleService().statistics()

        revenue = round(first.pricing.total + second.pricing.total, 2)
        assert stats["total_orders"] == 2
        assert stats["total_revenue"] == revenue
        assert stats["average_order_value"] == round(revenue / 2, 2)
        assert stats["total_items"] == 3
        assert stats["by_status"] == {"pending": 1, "confirmed": 1}
        assert stats["by_payment_method"]["cod"]["count"] == 1

    def test_empty_range(self):
        stats = OrderLifecycleService().statistics()
        assert stats["total_orders"] == 0
        assert stats["average_order_value"] == 0.0


class TestRecentAndActionable:
    def test_recent_orders_newest_first(self, place_order):
        placed = [place_order() for _ in range(3)]

        recent = OrderLifecycleService().recent_orders(limit=2)

        assert [o.order_number for o in recent] == [placed[2].order_number, placed[1].order_number]

    def test_stale_pending_orders_need_action(self, place_order):
        stale = place_order()
        place_order(payment_method="cod")
        service = OrderLifecycleService()

        assert service.orders_requiring_action() == []
        flagged = service.orders_requiring_action(now=datetime.now(UTC) + timedelta(days=4))
        assert [str(order.id) for order in flagged] == [str(stale.id)]

    def test_stale_processing_orders_need_action(self, place_order):
        service = OrderLifecycleService()
        order = place_order(payment_method="cod")
        service.update_status(order.id, "processing")

        flagged = service.orders_requiring_action(now=datetime.now(UTC) + timedelta(days=6))

        assert [str(o.id) for o in flagged] == [str(order.id)]

    def test_pending_return_needs_action(self, place_order):
        service = OrderLifecycleService()
        order = place_order(payment_method="cod")
        service.update_status(order.id, "processing")
        service.add_tracking(order.id, "Delhivery", "DL-1")
        service.update_status(order.id, "delivered")
        product_id = str(order.ordered_items[0].product_id)
        service.request_return(order.id, [{"product_id": product_id, "quantity": 1}], "Damaged")

        assert [str(o.id) for o in service.orders_requiring_action()] == [str(order.id)]

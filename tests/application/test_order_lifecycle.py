"""Application tests for post-checkout order lifecycle: status side effects and stock bookkeeping."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.catalogue.product import Product
from storefront.checkout.lifecycle import OrderLifecycleService
from storefront.errors import IllegalStatusTransition, MissingTrackingInfo, OrderNotFound
from storefront.order.order import OrderStatus, PaymentStatus, RefundStatus, ReservationStatus


def _product_id(order):
    return str(order.ordered_items[0].product_id)


def _processing(service, order):
    if order.status == OrderStatus.PENDING.value:
        service.update_status(order.id, "confirmed")
    return service.update_status(order.id, "processing")


def _shipped(service, order):
    _processing(service, order)
    return service.add_tracking(order.id, "Delhivery", "DL-1001")


class TestStatusUpdates:
    def test_confirming_does_not_resend_confirmation(self, place_order, notifier):
        order = place_order()

        updated = OrderLifecycleService().update_status(order.id, "confirmed", actor_id="admin-1")

        assert updated.status == OrderStatus.CONFIRMED.value
        assert updated.history[-1].actor_id == "admin-1"
        assert notifier.kinds() == ["order_confirmed"]

    def test_confirmation_sent_when_checkout_could_not(self, place_order, notifier):
        notifier.fail_with = ConnectionError("smtp down")
        order = place_order()
        notifier.fail_with = None

        updated = OrderLifecycleService().update_status(order.id, "confirmed")

        assert updated.confirmation_sent is True
        assert notifier.kinds() == ["order_confirmed"]

    def test_illegal_transition_rejected(self, place_order):
        order = place_order()
        with pytest.raises(IllegalStatusTransition) as exc_info:
            OrderLifecycleService().update_status(order.id, "shipped")
        assert exc_info.value.details() == {"current": "pending", "target": "shipped"}

    def test_unknown_status_rejected(self, place_order):
        with pytest.raises(ValidationError):
            OrderLifecycleService().update_status(place_order().id, "lost")

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            OrderLifecycleService().update_status("missing", "confirmed")

    def test_shipping_requires_tracking(self, place_order):
        service = OrderLifecycleService()
        order = place_order()
        _processing(service, order)

        with pytest.raises(MissingTrackingInfo):
            service.update_status(order.id, "shipped")


class TestShipping:
    def test_tracking_ships_a_processing_order(self, place_order, notifier, ledger):
        service = OrderLifecycleService()
        order = place_order()

        shipped = _shipped(service, order)

        assert shipped.status == OrderStatus.SHIPPED.value
        assert shipped.tracking.tracking_url == "https://track.delhivery.com/DL-1001"
        assert shipped.reservation_status == ReservationStatus.CONSUMED.value
        assert ledger.available(_product_id(order)) == 8
        assert notifier.kinds() == ["order_confirmed", "order_shipped"]

    def test_tracking_first_then_status(self, place_order, notifier):
        service = OrderLifecycleService()
        order = place_order(payment_method="cod")
        service.add_tracking(order.id, "BlueDart", "BD-7")
        service.update_status(order.id, "processing")

        shipped = service.update_status(order.id, "shipped")

        assert shipped.status == OrderStatus.SHIPPED.value
        assert shipped.reservation_status == ReservationStatus.CONSUMED.value
        assert notifier.kinds().count("order_shipped") == 1

    def test_cancelled_order_cannot_get_tracking(self, place_order):
        service = OrderLifecycleService()
        order = place_order()
        service.cancel_order(order.id, "customer request")

        with pytest.raises(IllegalStatusTransition):
            service.add_tracking(order.id, "Delhivery", "DL-1")

    def test_shipped_notification_failure_is_not_fatal(self, place_order, notifier):
        service = OrderLifecycleService()
        order = place_order()
        notifier.fail_with = ConnectionError("smtp down")

        shipped = _shipped(service, order)

        assert shipped.status == OrderStatus.SHIPPED.value


class TestDelivery:
    def test_delivery_records_product_sales(self, place_order):
        service = OrderLifecycleService()
        order = place_order(lines=[(100.0, 2)])
        _shipped(service, order)

        delivered = service.update_status(order.id, "delivered")

        assert delivered.delivered_at is not None
        assert delivered.tracking.delivered_at is not None
        product = current_domain.repository_for(Product).get(_product_id(order))
        assert product.purchases == 2
        assert product.revenue == 200.0


class TestCancellation:
    def test_processing_order_cancel_releases_stock(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order(lines=[(100.0, 2), (50.0, 3)])
        _processing(service, order)

        cancelled = service.cancel_order(order.id, "customer request", actor_id="cust")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancellation.reason == "customer request"
        assert cancelled.reservation_status == ReservationStatus.RELEASED.value
        for item in cancelled.ordered_items:
            assert ledger.available(str(item.product_id)) == 10

    def test_second_cancel_fails_without_releasing_again(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        service.cancel_order(order.id, "customer request")

        with pytest.raises(IllegalStatusTransition):
            service.cancel_order(order.id, "again")
        assert ledger.available(_product_id(order)) == 10

    def test_cancel_through_status_update_uses_note(self, place_order, ledger):
        order = place_order()

        cancelled = OrderLifecycleService().update_status(order.id, "cancelled", note="Fraud check failed")

        assert cancelled.cancellation.reason == "Fraud check failed"
        assert ledger.available(_product_id(order)) == 10

    def test_shipped_order_cannot_be_cancelled(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        _shipped(service, order)

        with pytest.raises(IllegalStatusTransition):
            service.cancel_order(order.id, "too late")
        assert ledger.available(_product_id(order)) == 8

    def test_customer_cannot_cancel_someone_elses_order(self, place_order):
        order = place_order()
        with pytest.raises(OrderNotFound):
            OrderLifecycleService().cancel_order(order.id, "not mine", customer_id="intruder")


class TestPaymentOutcomes:
    def test_payment_confirms_without_second_email(self, place_order, notifier):
        order = place_order()

        paid = OrderLifecycleService().record_payment(order.id, "txn-42")

        assert paid.status == OrderStatus.CONFIRMED.value
        assert paid.payment_status == PaymentStatus.PAID.value
        assert notifier.kinds() == ["order_confirmed"]

    def test_payment_failure_releases_stock_once(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()

        failed = service.record_payment_failure(order.id, "Card declined")
        service.record_payment_failure(order.id, "Card declined again")

        assert failed.status == OrderStatus.CANCELLED.value
        assert failed.payment_status == PaymentStatus.FAILED.value
        assert ledger.available(_product_id(order)) == 10


class TestRefunds:
    def test_partial_refund_keeps_order_and_stock(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        service.record_payment(order.id, "txn-1")

        refunded = service.refund(order.id, amount=50.0)

        assert refunded.payment_status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert refunded.status == OrderStatus.CONFIRMED.value
        assert ledger.available(_product_id(order)) == 8

    def test_full_refund_of_confirmed_order_returns_stock(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        service.record_payment(order.id, "txn-1")

        refunded = service.refund(order.id)

        assert refunded.status == OrderStatus.REFUNDED.value
        assert refunded.refund_amount == order.pricing.total
        assert ledger.available(_product_id(order)) == 10

    def test_refund_after_cancel_does_not_release_twice(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        service.record_payment(order.id, "txn-1")
        service.cancel_order(order.id, "changed my mind")

        refunded = service.refund(order.id)

        assert refunded.status == OrderStatus.REFUNDED.value
        assert refunded.cancellation.refund_status == RefundStatus.COMPLETED.value
        assert ledger.available(_product_id(order)) == 10

    def test_unpaid_order_cannot_be_refunded(self, place_order):
        with pytest.raises(ValidationError):
            OrderLifecycleService().refund(place_order().id)

    def test_refunded_status_on_unpaid_cancelled_order_is_rejected(self, place_order):
        service = OrderLifecycleService()
        order = place_order()
        service.cancel_order(order.id, "changed my mind")

        with pytest.raises(IllegalStatusTransition):
            service.update_status(order.id, "refunded")

        unchanged = service.get_order(order.id)
        assert unchanged.status == OrderStatus.CANCELLED.value
        assert unchanged.payment_status == PaymentStatus.PENDING.value

    def test_refunded_status_on_paid_cancelled_order_records_the_refund(self, place_order, ledger):
        service = OrderLifecycleService()
        order = place_order()
        service.record_payment(order.id, "txn-1")
        service.cancel_order(order.id, "changed my mind")

        refunded = service.update_status(order.id, "refunded", actor_id="admin-1")

        assert refunded.status == OrderStatus.REFUNDED.value
        assert refunded.payment_status == PaymentStatus.REFUNDED.value
        assert refunded.refund_amount == order.pricing.total
        assert refunded.cancellation.refund_status == RefundStatus.COMPLETED.value
        assert ledger.available(_product_id(order)) == 10

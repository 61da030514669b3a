"""Application tests for e-mail order notifications."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from protean import current_domain

from storefront.checkout.lifecycle import OrderLifecycleService
from storefront.customer.customer import Customer
from storefront.notifications import get_notifier, reset_notifier
from storefront.notifications.fake_email import FakeEmailAdapter
from storefront.notifications.notifier import EmailOrderNotifier


@pytest.fixture()
def email():
    return FakeEmailAdapter()


def _customer(order):
    return current_domain.repository_for(Customer).get(str(order.customer_id))


class TestEmailOrderNotifier:
    def test_confirmation_email(self, place_order, email):
        order = place_order(lines=[(100.0, 2)])

        EmailOrderNotifier(email).order_confirmed(_customer(order), order)

        [message] = email.sent_emails
        assert message["to"] == _customer(order).email
        assert message["subject"] == f"Order {order.order_number} confirmed"
        assert "2 x Product" in message["body"]
        assert f"Total: INR {order.pricing.total:.2f}" in message["body"]

    def test_shipped_email_carries_tracking(self, place_order, email):
        service = OrderLifecycleService()
        order = place_order(payment_method="cod")
        service.update_status(order.id, "processing")
        shipped = service.add_tracking(order.id, "Delhivery", "DL-55")

        EmailOrderNotifier(email).order_shipped(_customer(shipped), shipped)

        [message] = email.sent_emails
        assert message["subject"] == f"Order {order.order_number} has shipped"
        assert "DL-55" in message["body"]
        assert "https://track.delhivery.com/DL-55" in message["body"]

    def test_missing_customer_is_skipped(self, place_order, email):
        EmailOrderNotifier(email).order_confirmed(None, place_order())
        assert email.sent_emails == []

    def test_reported_failure_does_not_raise(self, place_order, email):
        order = place_order()
        email.configure(should_succeed=False, failure_reason="Mailbox full")

        EmailOrderNotifier(email).order_confirmed(_customer(order), order)

        assert email.sent_emails == []

    def test_raising_adapter_does_not_raise(self, place_order, email):
        order = place_order()
        email.configure(raise_on_send=True)

        EmailOrderNotifier(email).order_confirmed(_customer(order), order)

        assert email.sent_emails == []

    def test_delivery_on_executor(self, place_order, email):
        order = place_order()
        executor = ThreadPoolExecutor(max_workers=1)

        EmailOrderNotifier(email, executor=executor).order_confirmed(_customer(order), order)
        executor.shutdown(wait=True)

        assert len(email.sent_emails) == 1


class TestNotifierRegistry:
    def test_inline_notifier_from_environment(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATION_WORKERS", "0")
        reset_notifier()

        notifier = get_notifier()

        assert isinstance(notifier, EmailOrderNotifier)
        assert notifier.executor is None
        assert isinstance(notifier.email, FakeEmailAdapter)

    def test_checkout_sends_real_email_through_registry(self, monkeypatch, place_order):
        monkeypatch.setenv("NOTIFICATION_WORKERS", "0")
        reset_notifier()

        order = place_order()

        sent = get_notifier().email.sent_emails
        assert [m["subject"] for m in sent] == [f"Order {order.order_number} confirmed"]

    def test_unknown_adapter_rejected(self, monkeypatch):
        monkeypatch.setenv("EMAIL_ADAPTER", "carrier-pigeon")
        reset_notifier()

        with pytest.raises(ValueError):
            get_notifier()

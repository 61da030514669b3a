import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def adapters():
    """Fresh ledger, order sequence, settings and a recording notifier for every test."""
    from storefront.config import reset_settings
    from storefront.inventory import reset_stock_ledger, set_stock_ledger
    from storefront.inventory.memory_adapter import InMemoryStockLedger
    from storefront.notifications import reset_notifier, set_notifier
    from storefront.notifications.notifier import RecordingOrderNotifier
    from storefront.order.numbering import reset_sequence_allocator, set_sequence_allocator
    from storefront.order.numbering.memory_adapter import InMemorySequenceAllocator

    ledger = InMemoryStockLedger()
    notifier = RecordingOrderNotifier()
    set_stock_ledger(ledger)
    set_sequence_allocator(InMemorySequenceAllocator())
    set_notifier(notifier)
    reset_settings()

    yield {"ledger": ledger, "notifier": notifier}

    reset_stock_ledger()
    reset_sequence_allocator()
    reset_notifier()
    reset_settings()


@pytest.fixture()
def ledger(adapters):
    return adapters["ledger"]


@pytest.fixture()
def notifier(adapters):
    return adapters["notifier"]


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Clean up aggregate storage and the event store after every test."""
    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture()
def shipping_address():
    return {
        "first_name": "Asha",
        "last_name": "Rao",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "zip_code": "560001",
        "phone": "+919800000000",
    }


@pytest.fixture()
def make_product():
    """Create a product through its command; returns the product id."""
    from protean import current_domain

    from storefront.catalogue.management import CreateProduct

    counter = {"n": 0}

    def _make(price=100.0, stock=10, title=None, sku=None, low_stock_threshold=10):
        counter["n"] += 1
        return current_domain.process(
            CreateProduct(
                title=title or f"Product {counter['n']}",
                sku=sku or f"SKU-{counter['n']:04d}",
                price=price,
                stock=stock,
                low_stock_threshold=low_stock_threshold,
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def make_customer():
    """Register a customer; returns the customer id."""
    from protean import current_domain

    from storefront.customer.registration import RegisterCustomer

    counter = {"n": 0}

    def _make(first_name="Asha", last_name="Rao", email=None):
        counter["n"] += 1
        return current_domain.process(
            RegisterCustomer(
                email=email or f"customer{counter['n']}@example.com",
                first_name=first_name,
                last_name=last_name,
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def add_to_cart():
    from protean import current_domain

    from storefront.cart.items import AddToCart

    def _add(customer_id, product_id, quantity=1):
        return current_domain.process(
            AddToCart(customer_id=customer_id, product_id=product_id, quantity=quantity),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order(make_customer, make_product, add_to_cart, shipping_address):
    """Check out a fresh customer's cart; returns the placed order."""
    from storefront.checkout.workflow import CheckoutService

    def _place(payment_method="razorpay", lines=None, customer_id=None):
        customer_id = customer_id or make_customer()
        for price, quantity in lines or [(100.0, 2)]:
            add_to_cart(customer_id, make_product(price=price, stock=10), quantity)
        return CheckoutService().place_order(customer_id, shipping_address, payment_method)

    return _place

"""Application tests for product stock corrections through RestockProduct."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.catalogue.management import RestockProduct
from storefront.errors import ProductNotFound


def _restock(product_id, quantity, **kwargs):
    return current_domain.process(
        RestockProduct(product_id=product_id, quantity=quantity, **kwargs),
        asynchronous=False,
    )


class TestRestockProductCommand:
    def test_adds_by_default(self, make_product, ledger):
        product_id = make_product(stock=5)

        assert _restock(product_id, 3) == 8
        assert ledger.available(product_id) == 8

    def test_add_keeps_stock_reserved_by_a_placed_order(self, place_order, ledger):
        order = place_order(lines=[(100.0, 4)])
        product_id = str(order.ordered_items[0].product_id)

        _restock(product_id, 5, operation="add")

        assert ledger.available(product_id) == 11

    def test_subtract_stops_at_zero(self, make_product, ledger):
        product_id = make_product(stock=2)

        assert _restock(product_id, 5, operation="subtract") == 0

    def test_set_overwrites_with_counted_level(self, make_product, ledger):
        product_id = make_product(stock=7, low_stock_threshold=3)

        assert _restock(product_id, 2, operation="set") == 2
        assert ledger.level(product_id).low_stock_threshold == 3

    def test_unknown_operation_rejected(self, make_product, ledger):
        product_id = make_product(stock=7)

        with pytest.raises(ValidationError):
            _restock(product_id, 2, operation="double")
        assert ledger.available(product_id) == 7

    def test_unknown_product_rejected(self):
        with pytest.raises(ProductNotFound):
            _restock("missing", 2)

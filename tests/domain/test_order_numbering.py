"""Order number format and sequence allocation."""

import threading
from datetime import UTC, datetime

import pytest

from storefront.order.numbering.memory_adapter import InMemorySequenceAllocator
from storefront.order.numbering.port import format_order_number, order_number_key, period_key
from storefront.order.numbering.sql_adapter import SqlSequenceAllocator


@pytest.fixture(params=["memory", "sql"])
def allocator(request, tmp_path):
    if request.param == "memory":
        return InMemorySequenceAllocator()
    return SqlSequenceAllocator(f"sqlite:///{tmp_path / 'sequences.db'}")


class TestFormat:
    def test_period_key_is_two_digit_year_and_month(self):
        assert period_key(datetime(2025, 3, 9, tzinfo=UTC)) == "2503"

    def test_sequence_is_zero_padded(self):
        assert format_order_number(datetime(2025, 3, 9, tzinfo=UTC), 42) == "SG25030042"

    def test_sequence_beyond_four_digits_widens(self):
        assert format_order_number(datetime(2025, 12, 1, tzinfo=UTC), 12345) == "SG251212345"

    def test_widened_numbers_compare_after_four_digit_ones(self):
        numbers = ["SG250310000", "SG25039999", "SG25040001", "SG25030002"]
        assert sorted(numbers, key=order_number_key) == ["SG25030002", "SG25039999", "SG250310000", "SG25040001"]

    def test_key_splits_period_and_sequence(self):
        assert order_number_key("SG250310000") == ("2503", 10000)


class TestAllocation:
    def test_first_value_of_a_period_is_one(self, allocator):
        assert allocator.next_value("2503") == 1

    def test_values_increase_within_a_period(self, allocator):
        values = [allocator.next_value("2503") for _ in range(3)]
        assert values == [1, 2, 3]

    def test_each_month_has_its_own_counter(self, allocator):
        allocator.next_value("2503")
        allocator.next_value("2503")
        assert allocator.next_value("2504") == 1

    def test_order_numbers_are_strictly_increasing(self, allocator):
        now = datetime(2025, 3, 15, tzinfo=UTC)
        numbers = [allocator.next_order_number(now) for _ in range(5)]
        assert numbers == sorted(numbers)
        assert numbers[0] == "SG25030001"
        assert numbers[-1] == "SG25030005"

    def test_concurrent_allocations_never_collide(self, allocator):
        now = datetime(2025, 3, 15, tzinfo=UTC)
        numbers = []
        lock = threading.Lock()
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            for _ in range(5):
                number = allocator.next_order_number(now)
                with lock:
                    numbers.append(number)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(numbers) == 50
        assert len(set(numbers)) == 50
        assert max(numbers) == "SG25030050"

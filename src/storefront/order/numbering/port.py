"""Order number allocation.

Order numbers read ``SG`` + two-digit year + two-digit month + a sequence
number that restarts every month, e.g. ``SG25030042``. Sequences come from
a counter incremented atomically per month, so concurrent checkouts never
receive the same number.

The sequence widens past 9999 (``SG250310000``), so order numbers are
compared with ``order_number_key``, period first and then the sequence as
an integer, never as plain strings.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

ORDER_NUMBER_PREFIX = "SG"


def period_key(moment: datetime) -> str:
    return f"{moment:%y%m}"


def format_order_number(moment: datetime, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{period_key(moment)}{sequence:04d}"


def order_number_key(order_number: str) -> tuple[str, int]:
    prefix_length = len(ORDER_NUMBER_PREFIX)
    period = order_number[prefix_length : prefix_length + 4]
    return period, int(order_number[prefix_length + 4 :])


class SequenceAllocator(ABC):
    """Abstract monthly counter store."""

    @abstractmethod
    def next_value(self, period: str) -> int:
        """Atomically increment and return the counter for ``period`` (first value is 1)."""
        ...

    def next_order_number(self, now: datetime | None = None) -> str:
        now = now or datetime.now(UTC)
        return format_order_number(now, self.next_value(period_key(now)))

"""In-process order sequence counters."""

import threading

from storefront.order.numbering.port import SequenceAllocator


class InMemorySequenceAllocator(SequenceAllocator):
    def __init__(self):
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def next_value(self, period: str) -> int:
        with self._lock:
            value = self._counters.get(period, 0) + 1
            self._counters[period] = value
        return value

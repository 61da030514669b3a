"""Order sequence allocator registry.

``ORDER_SEQUENCE`` picks the adapter: ``memory`` (default) or ``sql``, the
latter connecting to ``ORDER_SEQUENCE_URL``.
"""

import os

from storefront.order.numbering.port import SequenceAllocator

_current_allocator: SequenceAllocator | None = None


def get_sequence_allocator() -> SequenceAllocator:
    global _current_allocator
    if _current_allocator is None:
        adapter = os.environ.get("ORDER_SEQUENCE", "memory")
        if adapter == "memory":
            from storefront.order.numbering.memory_adapter import InMemorySequenceAllocator

            _current_allocator = InMemorySequenceAllocator()
        elif adapter == "sql":
            from storefront.order.numbering.sql_adapter import SqlSequenceAllocator

            _current_allocator = SqlSequenceAllocator(
                os.environ.get("ORDER_SEQUENCE_URL", "sqlite:///storefront_sequences.db")
            )
        else:
            raise ValueError(f"Unknown order sequence adapter: {adapter}")
    return _current_allocator


def set_sequence_allocator(allocator: SequenceAllocator) -> None:
    """Override the active allocator (useful for tests)."""
    global _current_allocator
    _current_allocator = allocator


def reset_sequence_allocator() -> None:
    global _current_allocator
    _current_allocator = None

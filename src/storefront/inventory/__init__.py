"""Stock ledger registry.

``get_stock_ledger()`` returns the process-wide ledger. ``STOCK_LEDGER``
picks the adapter: ``memory`` (default) or ``sql``, the latter connecting
to ``STOCK_LEDGER_URL``.
"""

import os

from storefront.inventory.port import StockLedger

_current_ledger: StockLedger | None = None


def get_stock_ledger() -> StockLedger:
    global _current_ledger
    if _current_ledger is None:
        adapter = os.environ.get("STOCK_LEDGER", "memory")
        if adapter == "memory":
            from storefront.inventory.memory_adapter import InMemoryStockLedger

            _current_ledger = InMemoryStockLedger()
        elif adapter == "sql":
            from storefront.inventory.sql_adapter import SqlStockLedger

            _current_ledger = SqlStockLedger(os.environ.get("STOCK_LEDGER_URL", "sqlite:///storefront_stock.db"))
        else:
            raise ValueError(f"Unknown stock ledger adapter: {adapter}")
    return _current_ledger


def set_stock_ledger(ledger: StockLedger) -> None:
    """Override the active ledger (useful for tests)."""
    global _current_ledger
    _current_ledger = ledger


def reset_stock_ledger() -> None:
    global _current_ledger
    _current_ledger = None

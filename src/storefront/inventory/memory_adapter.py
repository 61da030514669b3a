"""In-process stock ledger guarded by a single lock."""

import threading
from datetime import UTC, datetime

from storefront.errors import InsufficientStock
from storefront.inventory.port import DEFAULT_LOW_STOCK_THRESHOLD, StockLedger, StockLevel


class InMemoryStockLedger(StockLedger):
    def __init__(self):
        self._levels: dict[str, StockLevel] = {}
        self._lock = threading.Lock()

    def register(
        self,
        product_id: str,
        quantity: int,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> StockLevel:
        self._check_quantity(quantity, allow_zero=True)
        level = StockLevel(
            product_id=str(product_id),
            available=quantity,
            low_stock_threshold=low_stock_threshold,
            last_stock_update=datetime.now(UTC),
        )
        with self._lock:
            self._levels[str(product_id)] = level
        return level

    def level(self, product_id: str) -> StockLevel | None:
        with self._lock:
            return self._levels.get(str(product_id))

    def reserve(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self._lock:
            current = self._levels.get(product_id)
            available = current.available if current else 0
            if current is None or available < quantity:
                raise InsufficientStock(product_id, quantity, available)
            updated = self._replace(current, available - quantity)
        self._log_level_change("reserved", product_id, quantity, updated.available, updated.low_stock_threshold)
        return updated.available

    def release(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self._lock:
            current = self._levels.get(product_id) or StockLevel(product_id=product_id, available=0)
            updated = self._replace(current, current.available + quantity)
        self._log_level_change("released", product_id, quantity, updated.available, updated.low_stock_threshold)
        return updated.available

    def deduct(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self._lock:
            current = self._levels.get(product_id) or StockLevel(product_id=product_id, available=0)
            updated = self._replace(current, max(current.available - quantity, 0))
        self._log_level_change("deducted", product_id, quantity, updated.available, updated.low_stock_threshold)
        return updated.available

    def low_stock(self) -> list[StockLevel]:
        with self._lock:
            levels = list(self._levels.values())
        return sorted((level for level in levels if level.is_low), key=lambda level: level.available)

    def _replace(self, current: StockLevel, available: int) -> StockLevel:
        updated = StockLevel(
            product_id=current.product_id,
            available=available,
            low_stock_threshold=current.low_stock_threshold,
            last_stock_update=datetime.now(UTC),
        )
        self._levels[current.product_id] = updated
        return updated

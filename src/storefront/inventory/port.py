"""Stock ledger port.

The ledger owns the available quantity of every product. Aggregates never
hold stock themselves; checkout and the order lifecycle reserve and
release through this interface so that a reservation is a single atomic
conditional decrement wherever the numbers actually live.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from protean.exceptions import ValidationError

from storefront.errors import InsufficientStock

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10


class StockOperation(Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class StockStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class StockLevel:
    product_id: str
    available: int
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    last_stock_update: datetime | None = None

    @property
    def status(self) -> StockStatus:
        if self.available == 0:
            return StockStatus.OUT_OF_STOCK
        if self.available <= self.low_stock_threshold:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    @property
    def is_low(self) -> bool:
        return self.available <= self.low_stock_threshold


@dataclass
class Reservation:
    """Stock held for a set of lines, returned to the ledger as one unit."""

    ledger: "StockLedger"
    lines: list[tuple[str, int]] = field(default_factory=list)
    released: bool = False

    @property
    def total_quantity(self) -> int:
        return sum(quantity for _, quantity in self.lines)

    def release(self) -> None:
        if self.released:
            return
        for product_id, quantity in self.lines:
            self.ledger.release(product_id, quantity)
        self.released = True


class StockLedger(ABC):
    """Abstract per-product stock store."""

    @abstractmethod
    def register(
        self,
        product_id: str,
        quantity: int,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> StockLevel:
        """Create the stock record for a product, or reset an existing one."""
        ...

    @abstractmethod
    def level(self, product_id: str) -> StockLevel | None: ...

    @abstractmethod
    def reserve(self, product_id: str, quantity: int) -> int:
        """Decrement stock only if at least ``quantity`` is available.

        Returns the new level. Raises ``InsufficientStock`` and changes
        nothing when the product has too little stock or no record at all.
        """
        ...

    @abstractmethod
    def release(self, product_id: str, quantity: int) -> int:
        """Return ``quantity`` units to stock and report the new level.

        Not idempotent: callers make sure each reservation is released once.
        """
        ...

    @abstractmethod
    def deduct(self, product_id: str, quantity: int) -> int:
        """Take up to ``quantity`` units out of stock, stopping at zero, and report the new level."""
        ...

    @abstractmethod
    def low_stock(self) -> list[StockLevel]: ...

    def available(self, product_id: str) -> int:
        current = self.level(product_id)
        return current.available if current else 0

    def adjust(self, product_id: str, operation, quantity: int) -> StockLevel:
        """Apply an admin stock correction.

        ``add`` and ``subtract`` move the level relative to its value at the
        moment of the write, so reservations made meanwhile are kept.
        ``set`` replaces it with a counted quantity. Subtracting more than is
        available leaves zero.
        """
        try:
            operation = StockOperation(operation)
        except ValueError as exc:
            raise ValidationError({"operation": [f"Unknown stock operation: {operation}"]}) from exc
        self._check_quantity(quantity, allow_zero=True)

        product_id = str(product_id)
        current = self.level(product_id)
        if operation == StockOperation.SET:
            threshold = current.low_stock_threshold if current else DEFAULT_LOW_STOCK_THRESHOLD
            self.register(product_id, quantity, threshold)
        elif quantity > 0 and operation == StockOperation.ADD:
            self.release(product_id, quantity)
        elif quantity > 0:
            self.deduct(product_id, quantity)

        updated = self.level(product_id)
        logger.info(
            "Stock adjusted",
            product_id=product_id,
            operation=operation.value,
            quantity=quantity,
            available=updated.available if updated else 0,
        )
        return updated

    def reserve_all(self, lines: Iterable[tuple[str, int]]) -> Reservation:
        """Reserve every line or none of them."""
        reservation = Reservation(ledger=self)
        for product_id, quantity in lines:
            try:
                self.reserve(product_id, quantity)
            except InsufficientStock:
                logger.info(
                    "Rolling back partial reservation",
                    failed_product_id=str(product_id),
                    reserved_lines=len(reservation.lines),
                )
                reservation.release()
                raise
            reservation.lines.append((str(product_id), quantity))
        return reservation

    @staticmethod
    def _check_quantity(quantity, allow_zero: bool = False) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError({"quantity": ["Quantity must be an integer"]})
        if quantity < 0 or (quantity == 0 and not allow_zero):
            raise ValidationError({"quantity": ["Quantity must be positive"]})

    @staticmethod
    def _log_level_change(action: str, product_id: str, quantity: int, new_level: int, threshold: int) -> None:
        logger.debug(
            f"Stock {action}",
            product_id=product_id,
            quantity=quantity,
            new_level=new_level,
        )
        if action in ("reserved", "deducted") and new_level <= threshold:
            logger.warning(
                "Low stock",
                product_id=product_id,
                available=new_level,
                threshold=threshold,
            )

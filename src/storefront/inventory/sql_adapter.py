"""SQL stock ledger.

Reservation is one conditional ``UPDATE ... WHERE available >= :quantity``;
the affected row count says whether it happened. The database serialises
concurrent decrements on the same row, so no application lock is needed and
the non-negative check constraint is never hit in normal operation.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    case,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storefront.errors import InsufficientStock
from storefront.inventory.port import DEFAULT_LOW_STOCK_THRESHOLD, StockLedger, StockLevel
from storefront.utils.dates import as_utc
from storefront.utils.db import build_engine

metadata = MetaData()

stock_levels = Table(
    "stock_levels",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("available", Integer, nullable=False),
    Column("low_stock_threshold", Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD),
    Column("last_stock_update", DateTime(timezone=True)),
    CheckConstraint("available >= 0", name="ck_stock_levels_available_non_negative"),
)


class SqlStockLedger(StockLedger):
    def __init__(self, engine: Engine | str):
        self.engine = build_engine(engine) if isinstance(engine, str) else engine
        metadata.create_all(self.engine)

    def register(
        self,
        product_id: str,
        quantity: int,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> StockLevel:
        self._check_quantity(quantity, allow_zero=True)
        product_id = str(product_id)
        values = {
            "available": quantity,
            "low_stock_threshold": low_stock_threshold,
            "last_stock_update": datetime.now(UTC),
        }
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(stock_levels).where(stock_levels.c.product_id == product_id).values(**values)
                )
                if result.rowcount == 0:
                    conn.execute(insert(stock_levels).values(product_id=product_id, **values))
        except IntegrityError:
            # Lost the insert to a concurrent register; the row exists now
            with self.engine.begin() as conn:
                conn.execute(update(stock_levels).where(stock_levels.c.product_id == product_id).values(**values))
        return self.level(product_id)

    def level(self, product_id: str) -> StockLevel | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(stock_levels).where(stock_levels.c.product_id == str(product_id))).first()
        return self._to_level(row) if row else None

    def reserve(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(stock_levels)
                .where(
                    stock_levels.c.product_id == product_id,
                    stock_levels.c.available >= quantity,
                )
                .values(
                    available=stock_levels.c.available - quantity,
                    last_stock_update=datetime.now(UTC),
                )
            )
            row = conn.execute(select(stock_levels).where(stock_levels.c.product_id == product_id)).first()

        if result.rowcount == 0:
            raise InsufficientStock(product_id, quantity, row.available if row else 0)

        self._log_level_change("reserved", product_id, quantity, row.available, row.low_stock_threshold)
        return row.available

    def release(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(stock_levels)
                .where(stock_levels.c.product_id == product_id)
                .values(
                    available=stock_levels.c.available + quantity,
                    last_stock_update=datetime.now(UTC),
                )
            )
            if result.rowcount == 0:
                conn.execute(
                    insert(stock_levels).values(
                        product_id=product_id,
                        available=quantity,
                        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
                        last_stock_update=datetime.now(UTC),
                    )
                )
            row = conn.execute(select(stock_levels).where(stock_levels.c.product_id == product_id)).first()

        self._log_level_change("released", product_id, quantity, row.available, row.low_stock_threshold)
        return row.available

    def deduct(self, product_id: str, quantity: int) -> int:
        self._check_quantity(quantity)
        product_id = str(product_id)
        with self.engine.begin() as conn:
            conn.execute(
                update(stock_levels)
                .where(stock_levels.c.product_id == product_id)
                .values(
                    available=case(
                        (stock_levels.c.available > quantity, stock_levels.c.available - quantity),
                        else_=0,
                    ),
                    last_stock_update=datetime.now(UTC),
                )
            )
            row = conn.execute(select(stock_levels).where(stock_levels.c.product_id == product_id)).first()

        available = row.available if row else 0
        threshold = row.low_stock_threshold if row else DEFAULT_LOW_STOCK_THRESHOLD
        self._log_level_change("deducted", product_id, quantity, available, threshold)
        return available

    def low_stock(self) -> list[StockLevel]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(stock_levels)
                .where(stock_levels.c.available <= stock_levels.c.low_stock_threshold)
                .order_by(stock_levels.c.available)
            ).all()
        return [self._to_level(row) for row in rows]

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(stock_levels.delete())

    @staticmethod
    def _to_level(row) -> StockLevel:
        return StockLevel(
            product_id=row.product_id,
            available=row.available,
            low_stock_threshold=row.low_stock_threshold,
            last_stock_update=as_utc(row.last_stock_update),
        )

"""SQL order sequence counters.

One row per month. Allocation is ``UPDATE ... SET value = value + 1``
followed by a read in the same transaction; the first allocation of a
month inserts the row, and a concurrent first insert loses on the primary
key and retries as an update.
"""

import structlog
from sqlalchemy import Column, Integer, MetaData, String, Table, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storefront.order.numbering.port import SequenceAllocator
from storefront.utils.db import build_engine

logger = structlog.get_logger(__name__)

metadata = MetaData()

order_sequences = Table(
    "order_sequences",
    metadata,
    Column("period", String(8), primary_key=True),
    Column("value", Integer, nullable=False),
)


class SqlSequenceAllocator(SequenceAllocator):
    def __init__(self, engine: Engine | str, max_attempts: int = 5):
        self.engine = build_engine(engine) if isinstance(engine, str) else engine
        self.max_attempts = max_attempts
        metadata.create_all(self.engine)

    def next_value(self, period: str) -> int:
        for attempt in range(1, self.max_attempts + 1):
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(order_sequences)
                    .where(order_sequences.c.period == period)
                    .values(value=order_sequences.c.value + 1)
                )
                if result.rowcount:
                    return conn.execute(
                        select(order_sequences.c.value).where(order_sequences.c.period == period)
                    ).scalar_one()

            try:
                with self.engine.begin() as conn:
                    conn.execute(insert(order_sequences).values(period=period, value=1))
                return 1
            except IntegrityError:
                logger.debug("Sequence row created concurrently, retrying", period=period, attempt=attempt)

        raise RuntimeError(f"Could not allocate an order sequence for {period} after {self.max_attempts} attempts")

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(order_sequences.delete())

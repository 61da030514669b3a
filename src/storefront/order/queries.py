"""Read-side query values for orders.

The HTTP layer validates raw query parameters with pydantic and hands the
core an ``OrderQuery``; the repository answers with an ``OrderPage``.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class OrderQuery:
    customer_id: str | None = None
    status: str | None = None
    payment_status: str | None = None
    payment_method: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    search: str | None = None  # Order number or recipient name, case-insensitive
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit


@dataclass(frozen=True)
class OrderPage:
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1

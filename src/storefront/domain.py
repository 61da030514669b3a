"""Storefront domain composition root.

A single bounded context holding the catalogue, carts, orders and
customers. Stock and order numbers live outside the aggregates, behind the
ledger and sequence adapters in ``storefront.inventory`` and
``storefront.order.numbering``.
"""

import logging

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

# Protean logs every UoW commit at INFO
logging.getLogger("protean").setLevel(logging.WARNING)

logger = get_logger(__name__)

storefront = Domain(name="storefront")

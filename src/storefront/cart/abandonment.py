"""Cart abandonment: flag idle carts and purge stale empty ones.

Both commands are meant to be triggered periodically by an external
scheduler through the maintenance endpoints.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.config import get_settings
from storefront.domain import storefront
from storefront.utils.dates import as_utc

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class DetectAbandonedCarts:
    """Flag carts with lines that were not modified for the idle threshold."""

    idle_threshold_hours = Integer(min_value=1)  # Defaults to CART_ABANDON_AFTER_HOURS
    as_of = DateTime()


@storefront.command(part_of="Cart")
class PurgeStaleCarts:
    """Delete empty carts not touched for ``older_than_days``."""

    older_than_days = Integer(default=30, min_value=1)
    as_of = DateTime()


@storefront.command_handler(part_of=Cart)
class CartAbandonmentHandler:
    @handle(DetectAbandonedCarts)
    def detect_abandoned_carts(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)
        threshold_hours = command.idle_threshold_hours or get_settings().cart_abandon_after_hours
        cutoff = as_of - timedelta(hours=threshold_hours)

        repo = current_domain.repository_for(Cart)
        candidates = repo.abandonment_candidates(cutoff)
        logger.info(
            "Checking for abandoned carts",
            cutoff=cutoff.isoformat(),
            candidates=len(candidates),
        )

        abandoned_count = 0
        for cart in candidates:
            try:
                cart.mark_abandoned()
                repo.add(cart)
            except ValidationError as exc:
                logger.warning("Failed to abandon cart", cart_id=str(cart.id), error=str(exc))
                continue
            abandoned_count += 1
            logger.info(
                "Marked cart as abandoned",
                cart_id=str(cart.id),
                customer_id=str(cart.customer_id),
                total_items=cart.total_items,
            )

        logger.info("Cart abandonment detection complete", abandoned_count=abandoned_count)
        return abandoned_count

    @handle(PurgeStaleCarts)
    def purge_stale_carts(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)
        cutoff = as_of - timedelta(days=command.older_than_days or 30)

        repo = current_domain.repository_for(Cart)
        stale = repo.stale_empty(cutoff)
        for cart in stale:
            repo.purge(cart)

        logger.info("Purged stale empty carts", purged=len(stale), cutoff=cutoff.isoformat())
        return len(stale)

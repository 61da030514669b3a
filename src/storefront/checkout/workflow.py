"""Checkout: turn a customer's cart into a placed order.

Flow:
    1. Load the cart; an empty or missing cart is rejected.
    2. Validate every line against the live catalogue and ledger stock.
    3. Re-check each line's product and stock right before committing.
    4. Price the cart (subtotal, shipping, tax).
    5. Allocate an order number, create and persist the order.
    6. Reserve stock for all lines as one unit.
    7. Clear the cart.
    8. Update the customer's order statistics.
    9. Send the order confirmation.

Steps 1-4 have no side effects. From step 5 on, a failure in 6 or 7
cancels the persisted order and returns whatever stock was reserved
before the error is raised. Steps 8 and 9 are best effort: failures are
logged and the placed order is returned regardless.

The service runs outside a command unit of work so that a compensated
order stays persisted as cancelled when the error propagates.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.items import validate_cart
from storefront.catalogue.product import Product
from storefront.checkout.pricing import price_cart
from storefront.config import CheckoutSettings, get_settings
from storefront.customer.customer import Customer
from storefront.errors import (
    CartValidationFailed,
    EmptyCart,
    InsufficientStock,
    ProductInactive,
    ProductNotFound,
    StockReservationRace,
)
from storefront.inventory import get_stock_ledger
from storefront.inventory.port import Reservation, StockLedger
from storefront.notifications import get_notifier
from storefront.notifications.notifier import OrderNotifier
from storefront.order.numbering import get_sequence_allocator
from storefront.order.numbering.port import SequenceAllocator
from storefront.order.order import Order, PaymentMethod, PaymentStatus, ShippingAddress

logger = structlog.get_logger(__name__)

RESERVATION_FAILED_REASON = "stock reservation failed"


class CheckoutService:
    def __init__(
        self,
        ledger: StockLedger | None = None,
        allocator: SequenceAllocator | None = None,
        notifier: OrderNotifier | None = None,
        settings: CheckoutSettings | None = None,
    ):
        self.ledger = ledger or get_stock_ledger()
        self.allocator = allocator or get_sequence_allocator()
        self.notifier = notifier or get_notifier()
        self.settings = settings or get_settings()

    def place_order(
        self,
        customer_id,
        shipping_address,
        payment_method,
        customer_notes=None,
        shipping_method="standard",
    ) -> Order:
        """Place an order from the customer's cart and return it.

        ``shipping_address`` is a ``ShippingAddress`` or a dict of its fields.
        Cash-on-delivery orders come back confirmed, every other payment
        method pending until the payment is recorded.
        """
        customer_id = str(customer_id)
        method = _payment_method(payment_method)
        if isinstance(shipping_address, dict):
            shipping_address = ShippingAddress(**shipping_address)

        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.for_customer(customer_id)
        if cart is None or cart.is_empty:
            raise EmptyCart(customer_id)

        flags = validate_cart(cart, self.ledger)
        if flags:
            logger.info("Cart failed validation at checkout", customer_id=customer_id, flags=len(flags))
            raise CartValidationFailed(flags)

        products = self._recheck_lines(cart)
        pricing = price_cart(cart, self.settings)

        order_repo = current_domain.repository_for(Order)
        order = Order.create(
            customer_id=customer_id,
            order_number=self.allocator.next_order_number(),
            items=[_snapshot(item, products[str(item.product_id)]) for item in cart.items],
            shipping_address=shipping_address,
            payment_method=method.value,
            pricing=pricing,
            shipping_method=shipping_method,
            customer_notes=customer_notes,
            actor_id=customer_id,
        )
        order_repo.add(order)
        order_id = str(order.id)
        logger.info(
            "Order created",
            order_id=order_id,
            order_number=order.order_number,
            customer_id=customer_id,
            total=order.pricing.total,
        )

        try:
            reservation = self.ledger.reserve_all(order.reserved_lines())
        except InsufficientStock as exc:
            self._compensate(order_id, reservation=None)
            raise StockReservationRace(exc.product_id, exc.requested, exc.available, order_id=order_id) from exc

        order = order_repo.get(order_id)
        order.mark_stock_reserved()
        try:
            order_repo.add(order)
            cart.clear()
            cart_repo.add(cart)
        except Exception:
            logger.error("Checkout failed after reserving stock", order_id=order_id, customer_id=customer_id)
            self._compensate(order_id, reservation=reservation)
            raise

        customer = self._record_customer_order(customer_id, order)
        self._send_confirmation(customer, order_id)

        logger.info("Order placed", order_id=order_id, order_number=order.order_number, status=order.status)
        return order_repo.get(order_id)

    def _recheck_lines(self, cart: Cart) -> dict[str, Product]:
        products = current_domain.repository_for(Product).find_many(item.product_id for item in cart.items)
        for item in cart.items:
            product_id = str(item.product_id)
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            if not product.is_active:
                raise ProductInactive(product_id)
            available = self.ledger.available(product_id)
            if available < item.quantity:
                raise InsufficientStock(product_id, item.quantity, available)
        return products

    def _compensate(self, order_id: str, reservation: Reservation | None) -> None:
        """Hand back the reserved stock, then cancel the order as a failed reservation.

        Stock goes back even when the cancelled order cannot be saved.
        """
        if reservation is not None:
            reservation.release()

        try:
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            order.cancel_order(RESERVATION_FAILED_REASON, actor_id="system")
            order.payment_status = PaymentStatus.FAILED.value
            order.mark_stock_released()
            repo.add(order)
        except Exception as exc:
            logger.error("Failed to cancel compensated order", order_id=order_id, error=str(exc))
        logger.warning(
            "Order compensated",
            order_id=order_id,
            released_units=reservation.total_quantity if reservation else 0,
        )

    def _record_customer_order(self, customer_id: str, order: Order) -> Customer | None:
        try:
            repo = current_domain.repository_for(Customer)
            customer = repo.find(customer_id)
            if customer is None:
                logger.warning("Order placed for unknown customer", customer_id=customer_id)
                return None
            customer.record_order(order.pricing.total, order.created_at)
            repo.add(customer)
            return repo.get(customer_id)
        except Exception as exc:
            logger.warning("Failed to update customer statistics", customer_id=customer_id, error=str(exc))
            return None

    def _send_confirmation(self, customer: Customer | None, order_id: str) -> None:
        try:
            repo = current_domain.repository_for(Order)
            order = repo.get(order_id)
            self.notifier.order_confirmed(customer, order)
            order.mark_confirmation_sent()
            repo.add(order)
        except Exception as exc:
            logger.warning("Failed to send order confirmation", order_id=order_id, error=str(exc))


def _payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError as exc:
        raise ValidationError({"payment_method": [f"Unsupported payment method: {value}"]}) from exc


def _snapshot(item, product: Product) -> dict:
    return {
        "product_id": str(item.product_id),
        "title": product.title,
        "price": item.price,
        "quantity": item.quantity,
        "sku": product.sku,
        "brand": product.brand,
        "image_url": product.image_url,
        "description": product.description,
        "variants": item.selected_variants,
    }

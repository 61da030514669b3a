"""Error taxonomy for the order lifecycle.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the
API layer can render it without knowing each type. Validation-class
errors are protean ``ValidationError`` subclasses (``.messages`` keyed by
field); lookups that find nothing are ``ObjectNotFoundError`` subclasses.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class StorefrontError(Exception):
    """Mixin carrying the API rendering contract."""

    code = "storefront_error"
    status_code = 400

    def details(self) -> dict:
        return {}


class EmptyCart(ValidationError, StorefrontError):
    code = "empty_cart"

    def __init__(self, customer_id):
        self.customer_id = str(customer_id)
        super().__init__({"cart": ["Cart is empty"]})

    def details(self) -> dict:
        return {"customer_id": self.customer_id}


class CartValidationFailed(ValidationError, StorefrontError):
    """The cart no longer matches the live catalogue; ``flags`` say how."""

    code = "cart_validation_failed"

    def __init__(self, flags: list[dict]):
        self.flags = flags
        super().__init__({"cart": [_describe_flag(flag) for flag in flags]})

    def details(self) -> dict:
        return {"flags": self.flags}


class InsufficientStock(ValidationError, StorefrontError):
    code = "insufficient_stock"

    def __init__(self, product_id, requested: int, available: int):
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        super().__init__(
            {"quantity": [f"Only {available} unit(s) of product {self.product_id} available, {requested} requested"]}
        )

    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


class StockReservationRace(InsufficientStock):
    """Stock ran out between cart validation and reservation; the order was compensated."""

    code = "stock_reservation_race"
    status_code = 409

    def __init__(self, product_id, requested: int, available: int, order_id=None):
        self.order_id = str(order_id) if order_id else None
        super().__init__(product_id, requested, available)

    def details(self) -> dict:
        return {**super().details(), "order_id": self.order_id}


class ProductInactive(ValidationError, StorefrontError):
    code = "product_inactive"

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {self.product_id} is not available"]})

    def details(self) -> dict:
        return {"product_id": self.product_id}


class IllegalStatusTransition(ValidationError, StorefrontError):
    code = "illegal_status_transition"
    status_code = 409

    def __init__(self, current: str, target: str, reason: str | None = None):
        self.current = current
        self.target = target
        super().__init__({"status": [reason or f"Cannot transition from {current} to {target}"]})

    def details(self) -> dict:
        return {"current": self.current, "target": self.target}


class MissingTrackingInfo(ValidationError, StorefrontError):
    code = "missing_tracking_info"

    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"tracking": ["Tracking information is required before shipping"]})

    def details(self) -> dict:
        return {"order_id": self.order_id}


class ReturnWindowExpired(ValidationError, StorefrontError):
    code = "return_window_expired"

    def __init__(self, order_id, window_days: int):
        self.order_id = str(order_id)
        self.window_days = window_days
        super().__init__({"return": [f"Returns are accepted within {window_days} days of delivery"]})

    def details(self) -> dict:
        return {"order_id": self.order_id, "window_days": self.window_days}


class DuplicateReturnRequest(ValidationError, StorefrontError):
    code = "duplicate_return_request"
    status_code = 409

    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"return": ["A return has already been requested for this order"]})

    def details(self) -> dict:
        return {"order_id": self.order_id}


class ProductNotFound(ObjectNotFoundError, StorefrontError):
    code = "product_not_found"
    status_code = 404

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {self.product_id} does not exist"]})

    def details(self) -> dict:
        return {"product_id": self.product_id}


class ItemNotFound(ObjectNotFoundError, StorefrontError):
    code = "item_not_found"
    status_code = 404

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {self.product_id} is not in the cart"]})

    def details(self) -> dict:
        return {"product_id": self.product_id}


class OrderNotFound(ObjectNotFoundError, StorefrontError):
    code = "order_not_found"
    status_code = 404

    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"order_id": [f"Order {self.order_id} does not exist"]})

    def details(self) -> dict:
        return {"order_id": self.order_id}


class CustomerNotFound(ObjectNotFoundError, StorefrontError):
    code = "customer_not_found"
    status_code = 404

    def __init__(self, customer_id):
        self.customer_id = str(customer_id)
        super().__init__({"customer_id": [f"Customer {self.customer_id} does not exist"]})

    def details(self) -> dict:
        return {"customer_id": self.customer_id}


def _describe_flag(flag: dict) -> str:
    action = flag["action"]
    if action == "remove":
        return f"{flag['product_id']}: {flag['reason']}"
    if action == "update_quantity":
        return f"{flag['product_id']}: only {flag['available_stock']} in stock"
    return f"{flag['product_id']}: price changed from {flag['old_price']} to {flag['new_price']}"


ERROR_TYPES = (
    EmptyCart,
    CartValidationFailed,
    StockReservationRace,
    InsufficientStock,
    ProductInactive,
    IllegalStatusTransition,
    MissingTrackingInfo,
    ReturnWindowExpired,
    DuplicateReturnRequest,
    ProductNotFound,
    ItemNotFound,
    OrderNotFound,
    CustomerNotFound,
)

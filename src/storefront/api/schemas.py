"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the protean commands and
aggregates they are translated into.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class CreateProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Cotton Kurta",
                    "sku": "KURTA-BLU-M",
                    "price": 125.0,
                    "brand": "Handloom Co",
                    "stock": 40,
                    "low_stock_threshold": 5,
                }
            ]
        }
    }

    title: str = Field(..., max_length=200)
    sku: str = Field(..., max_length=64)
    price: float = Field(..., ge=0)
    description: str | None = None
    brand: str | None = Field(None, max_length=100)
    image_url: str | None = Field(None, max_length=500)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(10, ge=0)


class ChangePriceRequest(BaseModel):
    price: float = Field(..., ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(..., ge=0)
    operation: Literal["add", "subtract", "set"] = "add"


class ProductIdResponse(BaseModel):
    product_id: str


class ProductResponse(BaseModel):
    product_id: str
    title: str
    sku: str
    price: float
    is_active: bool
    description: str | None = None
    brand: str | None = None
    image_url: str | None = None
    available: int = 0
    stock_status: str
    purchases: int = 0
    revenue: float = 0.0


class StockLevelResponse(BaseModel):
    product_id: str
    available: int
    low_stock_threshold: int
    status: str
    last_stock_update: datetime | None = None


class LowStockResponse(BaseModel):
    items: list[StockLevelResponse]


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
class RegisterCustomerRequest(BaseModel):
    email: str = Field(..., max_length=254)
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    phone: str | None = Field(None, max_length=20)


class CustomerIdResponse(BaseModel):
    customer_id: str


class CustomerResponse(BaseModel):
    customer_id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    total_orders: int = 0
    total_spent: float = 0.0
    last_order_at: datetime | None = None


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
class VariantSchema(BaseModel):
    name: str
    value: str
    price: float | None = None


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1, le=99)
    variants: list[VariantSchema] = []


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., le=99)


class CartItemResponse(BaseModel):
    product_id: str
    quantity: int
    price: float
    line_total: float
    variants: list[dict] = []


class CartResponse(BaseModel):
    cart_id: str | None = None
    customer_id: str
    items: list[CartItemResponse] = []
    total_items: int = 0
    total_amount: float = 0.0
    is_abandoned: bool = False


class CartValidationResponse(BaseModel):
    valid: bool
    flags: list[dict] = []


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
PaymentMethodLiteral = Literal["stripe", "paypal", "razorpay", "cod"]


class ShippingAddressSchema(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    street: str = Field(..., max_length=255)
    apartment: str | None = Field(None, max_length=100)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    zip_code: str = Field(..., max_length=20)
    country: str = Field("India", max_length=100)
    phone: str = Field(..., max_length=20)


class CreateOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "payment_method": "cod",
                    "shipping_address": {
                        "first_name": "Asha",
                        "last_name": "Rao",
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "KA",
                        "zip_code": "560001",
                        "phone": "+919800000000",
                    },
                }
            ]
        }
    }

    customer_id: str
    shipping_address: ShippingAddressSchema
    payment_method: PaymentMethodLiteral
    customer_notes: str | None = Field(None, max_length=500)
    shipping_method: str = Field("standard", max_length=50)


class UpdateStatusRequest(BaseModel):
    status: Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"]
    note: str | None = Field(None, max_length=500)
    actor_id: str | None = None


class AddTrackingRequest(BaseModel):
    provider: str = Field(..., max_length=50)
    tracking_number: str = Field(..., max_length=100)
    tracking_url: str | None = Field(None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., max_length=500)
    actor_id: str | None = None
    customer_id: str | None = None


class ReturnItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    reason: str | None = None


class RequestReturnRequest(BaseModel):
    items: list[ReturnItemSchema] = Field(..., min_length=1)
    reason: str = Field(..., max_length=500)
    customer_id: str | None = None


class ResolveReturnRequest(BaseModel):
    decision: Literal["approved", "rejected", "completed"]
    actor_id: str | None = None


class PaymentOutcomeRequest(BaseModel):
    outcome: Literal["succeeded", "failed"]
    transaction_id: str | None = None
    reason: str | None = None


class RefundRequest(BaseModel):
    amount: float | None = Field(None, gt=0)
    actor_id: str | None = None


class OrderItemResponse(BaseModel):
    product_id: str
    title: str
    sku: str | None = None
    price: float
    quantity: int
    line_total: float


class PricingResponse(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    currency: str


class StatusChangeResponse(BaseModel):
    status: str
    changed_at: datetime
    note: str | None = None
    actor_id: str | None = None


class TrackingResponse(BaseModel):
    provider: str
    tracking_number: str
    tracking_url: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class ReturnRequestResponse(BaseModel):
    status: str
    reason: str
    requested_at: datetime
    items: list[dict] = []
    resolved_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    payment_method: str
    payment_status: str
    items: list[OrderItemResponse]
    pricing: PricingResponse
    shipping_address: ShippingAddressSchema | None = None
    status_history: list[StatusChangeResponse] = []
    tracking: TrackingResponse | None = None
    return_request: ReturnRequestResponse | None = None
    cancellation_reason: str | None = None
    refund_amount: float = 0.0
    reservation_status: str | None = None
    created_at: datetime | None = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool


class OrderStatisticsResponse(BaseModel):
    total_orders: int
    total_revenue: float
    average_order_value: float
    total_items: int
    by_status: dict[str, int]
    by_payment_method: dict[str, dict]


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class DetectAbandonedCartsRequest(BaseModel):
    idle_threshold_hours: int | None = Field(None, ge=1)
    as_of: datetime | None = None


class PurgeStaleCartsRequest(BaseModel):
    older_than_days: int = Field(30, ge=1)
    as_of: datetime | None = None


class CountResponse(BaseModel):
    status: str = "ok"
    count: int

"""FastAPI routes for the Storefront: products, customers, carts and orders.

Catalogue, customer and cart writes go through protean commands. Checkout
and the order lifecycle go through their services, which persist as they
go so that compensated orders survive the error they raise.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddToCartRequest,
    AddTrackingRequest,
    CancelOrderRequest,
    CartItemResponse,
    CartResponse,
    CartValidationResponse,
    ChangePriceRequest,
    CountResponse,
    CreateOrderRequest,
    CreateProductRequest,
    CustomerIdResponse,
    CustomerResponse,
    DetectAbandonedCartsRequest,
    LowStockResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    PaymentOutcomeRequest,
    PricingResponse,
    ProductIdResponse,
    ProductResponse,
    PurgeStaleCartsRequest,
    RefundRequest,
    RegisterCustomerRequest,
    RequestReturnRequest,
    ResolveReturnRequest,
    RestockRequest,
    ReturnRequestResponse,
    ShippingAddressSchema,
    StatusChangeResponse,
    StatusResponse,
    StockLevelResponse,
    TrackingResponse,
    UpdateCartItemRequest,
    UpdateStatusRequest,
)
from storefront.cart.abandonment import DetectAbandonedCarts, PurgeStaleCarts
from storefront.cart.cart import Cart
from storefront.cart.items import (
    AddToCart,
    ClearCart,
    RefreshCart,
    RemoveFromCart,
    UpdateCartQuantity,
    require_cart,
    validate_cart,
)
from storefront.catalogue.management import (
    ActivateProduct,
    ChangeProductPrice,
    CreateProduct,
    DeactivateProduct,
    RestockProduct,
)
from storefront.catalogue.product import Product
from storefront.checkout.lifecycle import OrderLifecycleService
from storefront.checkout.workflow import CheckoutService
from storefront.customer.customer import Customer
from storefront.customer.registration import RegisterCustomer
from storefront.inventory import get_stock_ledger
from storefront.inventory.port import StockLevel, StockStatus
from storefront.order.order import Order
from storefront.order.queries import OrderQuery

product_router = APIRouter(prefix="/products", tags=["products"])
customer_router = APIRouter(prefix="/customers", tags=["customers"])
cart_router = APIRouter(prefix="/carts", tags=["carts"])
order_router = APIRouter(prefix="/orders", tags=["orders"])
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _stock_response(level: StockLevel) -> StockLevelResponse:
    return StockLevelResponse(
        product_id=level.product_id,
        available=level.available,
        low_stock_threshold=level.low_stock_threshold,
        status=level.status.value,
        last_stock_update=level.last_stock_update,
    )


def _product_response(product: Product) -> ProductResponse:
    level = get_stock_ledger().level(str(product.id))
    return ProductResponse(
        product_id=str(product.id),
        title=product.title,
        sku=product.sku,
        price=product.price,
        is_active=product.is_active,
        description=product.description,
        brand=product.brand,
        image_url=product.image_url,
        available=level.available if level else 0,
        stock_status=level.status.value if level else StockStatus.OUT_OF_STOCK.value,
        purchases=product.purchases or 0,
        revenue=product.revenue or 0.0,
    )


def _cart_response(customer_id: str, cart: Cart | None) -> CartResponse:
    if cart is None:
        return CartResponse(customer_id=customer_id)
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id),
        items=[
            CartItemResponse(
                product_id=str(item.product_id),
                quantity=item.quantity,
                price=item.price,
                line_total=item.line_total,
                variants=item.selected_variants,
            )
            for item in cart.items
        ],
        total_items=cart.total_items,
        total_amount=cart.total_amount,
        is_abandoned=cart.is_abandoned,
    )


def _order_response(order: Order) -> OrderResponse:
    address = order.shipping_address
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                title=item.title,
                sku=item.sku,
                price=item.price,
                quantity=item.quantity,
                line_total=item.line_total,
            )
            for item in order.ordered_items
        ],
        pricing=PricingResponse(
            subtotal=order.pricing.subtotal,
            tax=order.pricing.tax,
            shipping=order.pricing.shipping,
            discount=order.pricing.discount,
            total=order.pricing.total,
            currency=order.pricing.currency,
        ),
        shipping_address=(
            ShippingAddressSchema(
                first_name=address.first_name,
                last_name=address.last_name,
                street=address.street,
                apartment=address.apartment,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                country=address.country,
                phone=address.phone,
            )
            if address
            else None
        ),
        status_history=[
            StatusChangeResponse(
                status=change.status,
                changed_at=change.changed_at,
                note=change.note,
                actor_id=str(change.actor_id) if change.actor_id else None,
            )
            for change in order.history
        ],
        tracking=(
            TrackingResponse(
                provider=order.tracking.provider,
                tracking_number=order.tracking.tracking_number,
                tracking_url=order.tracking.tracking_url,
                shipped_at=order.tracking.shipped_at,
                delivered_at=order.tracking.delivered_at,
            )
            if order.tracking
            else None
        ),
        return_request=(
            ReturnRequestResponse(
                status=order.return_request.status,
                reason=order.return_request.reason,
                requested_at=order.return_request.requested_at,
                items=order.return_request.returned_items,
                resolved_at=order.return_request.resolved_at,
            )
            if order.return_request
            else None
        ),
        cancellation_reason=order.cancellation.reason if order.cancellation else None,
        refund_amount=order.refund_amount or 0.0,
        reservation_status=order.reservation_status,
        created_at=order.created_at,
    )


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def create_product(body: CreateProductRequest) -> ProductIdResponse:
    command = CreateProduct(
        title=body.title,
        sku=body.sku,
        price=body.price,
        description=body.description,
        brand=body.brand,
        image_url=body.image_url,
        stock=body.stock,
        low_stock_threshold=body.low_stock_threshold,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@product_router.get("/low-stock", response_model=LowStockResponse)
async def low_stock() -> LowStockResponse:
    return LowStockResponse(items=[_stock_response(level) for level in get_stock_ledger().low_stock()])


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    product = current_domain.repository_for(Product).require(product_id)
    return _product_response(product)


@product_router.put("/{product_id}/price", response_model=StatusResponse)
async def change_price(product_id: str, body: ChangePriceRequest) -> StatusResponse:
    current_domain.process(ChangeProductPrice(product_id=product_id, price=body.price), asynchronous=False)
    return StatusResponse()


@product_router.put("/{product_id}/activate", response_model=StatusResponse)
async def activate_product(product_id: str) -> StatusResponse:
    current_domain.process(ActivateProduct(product_id=product_id), asynchronous=False)
    return StatusResponse()


@product_router.put("/{product_id}/deactivate", response_model=StatusResponse)
async def deactivate_product(product_id: str) -> StatusResponse:
    current_domain.process(DeactivateProduct(product_id=product_id), asynchronous=False)
    return StatusResponse()


@product_router.put("/{product_id}/stock", response_model=StockLevelResponse)
async def restock_product(product_id: str, body: RestockRequest) -> StockLevelResponse:
    current_domain.process(
        RestockProduct(product_id=product_id, quantity=body.quantity, operation=body.operation),
        asynchronous=False,
    )
    return _stock_response(get_stock_ledger().level(product_id))


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
@customer_router.post("", status_code=201, response_model=CustomerIdResponse)
async def register_customer(body: RegisterCustomerRequest) -> CustomerIdResponse:
    command = RegisterCustomer(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    result = current_domain.process(command, asynchronous=False)
    return CustomerIdResponse(customer_id=result)


@customer_router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str) -> CustomerResponse:
    customer = current_domain.repository_for(Customer).require(customer_id)
    return CustomerResponse(
        customer_id=str(customer.id),
        email=customer.email,
        first_name=customer.first_name,
        last_name=customer.last_name,
        phone=customer.phone,
        total_orders=customer.total_orders or 0,
        total_spent=customer.total_spent or 0.0,
        last_order_at=customer.last_order_at,
    )


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
def _load_cart(customer_id: str) -> Cart | None:
    return current_domain.repository_for(Cart).for_customer(customer_id)


@cart_router.get("/{customer_id}", response_model=CartResponse)
async def get_cart(customer_id: str) -> CartResponse:
    return _cart_response(customer_id, _load_cart(customer_id))


@cart_router.post("/{customer_id}/items", response_model=CartResponse)
async def add_to_cart(customer_id: str, body: AddToCartRequest) -> CartResponse:
    command = AddToCart(
        customer_id=customer_id,
        product_id=body.product_id,
        quantity=body.quantity,
        variants=json.dumps([variant.model_dump() for variant in body.variants]),
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(customer_id, _load_cart(customer_id))


@cart_router.put("/{customer_id}/items/{product_id}", response_model=CartResponse)
async def update_cart_item(customer_id: str, product_id: str, body: UpdateCartItemRequest) -> CartResponse:
    command = UpdateCartQuantity(customer_id=customer_id, product_id=product_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return _cart_response(customer_id, _load_cart(customer_id))


@cart_router.delete("/{customer_id}/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(customer_id: str, product_id: str) -> CartResponse:
    current_domain.process(RemoveFromCart(customer_id=customer_id, product_id=product_id), asynchronous=False)
    return _cart_response(customer_id, _load_cart(customer_id))


@cart_router.delete("/{customer_id}", response_model=CartResponse)
async def clear_cart(customer_id: str) -> CartResponse:
    current_domain.process(ClearCart(customer_id=customer_id), asynchronous=False)
    return _cart_response(customer_id, _load_cart(customer_id))


@cart_router.get("/{customer_id}/validation", response_model=CartValidationResponse)
async def validate_customer_cart(customer_id: str) -> CartValidationResponse:
    """Report what no longer matches the catalogue, without changing the cart."""
    flags = validate_cart(require_cart(customer_id), get_stock_ledger())
    return CartValidationResponse(valid=not flags, flags=flags)


@cart_router.post("/{customer_id}/refresh", response_model=CartValidationResponse)
async def refresh_cart(customer_id: str) -> CartValidationResponse:
    """Correct the cart against the catalogue and report what changed."""
    flags = current_domain.process(RefreshCart(customer_id=customer_id), asynchronous=False)
    return CartValidationResponse(valid=not flags, flags=flags)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest) -> OrderResponse:
    order = CheckoutService().place_order(
        customer_id=body.customer_id,
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
        customer_notes=body.customer_notes,
        shipping_method=body.shipping_method,
    )
    return _order_response(order)


@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    customer_id: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    payment_method: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    query = OrderQuery(
        customer_id=customer_id,
        status=status,
        payment_status=payment_status,
        payment_method=payment_method,
        created_from=created_from,
        created_to=created_to,
        search=search,
        page=page,
        limit=limit,
    )
    result = OrderLifecycleService().list_orders(query)
    return OrderListResponse(
        items=[_order_response(order) for order in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )


@order_router.get("/statistics", response_model=OrderStatisticsResponse)
async def order_statistics(start: datetime | None = None, end: datetime | None = None) -> OrderStatisticsResponse:
    return OrderStatisticsResponse(**OrderLifecycleService().statistics(start, end))


@order_router.get("/recent", response_model=list[OrderResponse])
async def recent_orders(limit: int = Query(10, ge=1, le=100)) -> list[OrderResponse]:
    return [_order_response(order) for order in OrderLifecycleService().recent_orders(limit)]


@order_router.get("/requiring-action", response_model=list[OrderResponse])
async def orders_requiring_action() -> list[OrderResponse]:
    return [_order_response(order) for order in OrderLifecycleService().orders_requiring_action()]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, customer_id: str | None = None) -> OrderResponse:
    return _order_response(OrderLifecycleService().get_order(order_id, customer_id=customer_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, body: UpdateStatusRequest) -> OrderResponse:
    order = OrderLifecycleService().update_status(order_id, body.status, note=body.note, actor_id=body.actor_id)
    return _order_response(order)


@order_router.put("/{order_id}/tracking", response_model=OrderResponse)
async def add_tracking(order_id: str, body: AddTrackingRequest) -> OrderResponse:
    order = OrderLifecycleService().add_tracking(order_id, body.provider, body.tracking_number, body.tracking_url)
    return _order_response(order)


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderResponse:
    order = OrderLifecycleService().cancel_order(
        order_id,
        body.reason,
        actor_id=body.actor_id,
        customer_id=body.customer_id,
    )
    return _order_response(order)


@order_router.post("/{order_id}/return", response_model=OrderResponse)
async def request_return(order_id: str, body: RequestReturnRequest) -> OrderResponse:
    order = OrderLifecycleService().request_return(
        order_id,
        [item.model_dump() for item in body.items],
        body.reason,
        customer_id=body.customer_id,
    )
    return _order_response(order)


@order_router.put("/{order_id}/return", response_model=OrderResponse)
async def resolve_return(order_id: str, body: ResolveReturnRequest) -> OrderResponse:
    order = OrderLifecycleService().resolve_return(order_id, body.decision, actor_id=body.actor_id)
    return _order_response(order)


@order_router.post("/{order_id}/payment", response_model=OrderResponse)
async def record_payment_outcome(order_id: str, body: PaymentOutcomeRequest) -> OrderResponse:
    service = OrderLifecycleService()
    if body.outcome == "succeeded":
        order = service.record_payment(order_id, body.transaction_id)
    else:
        order = service.record_payment_failure(order_id, body.reason)
    return _order_response(order)


@order_router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(order_id: str, body: RefundRequest) -> OrderResponse:
    order = OrderLifecycleService().refund(order_id, amount=body.amount, actor_id=body.actor_id)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Maintenance: periodic jobs triggered by an external scheduler
# ---------------------------------------------------------------------------
@maintenance_router.post("/carts/detect-abandoned", response_model=CountResponse)
async def detect_abandoned_carts(body: DetectAbandonedCartsRequest | None = None) -> CountResponse:
    body = body or DetectAbandonedCartsRequest()
    command = DetectAbandonedCarts(idle_threshold_hours=body.idle_threshold_hours, as_of=body.as_of)
    return CountResponse(count=current_domain.process(command, asynchronous=False))


@maintenance_router.post("/carts/purge", response_model=CountResponse)
async def purge_stale_carts(body: PurgeStaleCartsRequest | None = None) -> CountResponse:
    body = body or PurgeStaleCartsRequest()
    command = PurgeStaleCarts(older_than_days=body.older_than_days, as_of=body.as_of)
    return CountResponse(count=current_domain.process(command, asynchronous=False))

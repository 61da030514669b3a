"""Message templates keyed by notification kind."""

from storefront.notifications.templates.order_confirmation import OrderConfirmationTemplate
from storefront.notifications.templates.order_shipped import OrderShippedTemplate

ORDER_CONFIRMED = "order_confirmed"
ORDER_SHIPPED = "order_shipped"

TEMPLATE_REGISTRY: dict[str, type] = {
    ORDER_CONFIRMED: OrderConfirmationTemplate,
    ORDER_SHIPPED: OrderShippedTemplate,
}


def render(kind: str, context: dict) -> dict:
    return TEMPLATE_REGISTRY[kind].render(context)

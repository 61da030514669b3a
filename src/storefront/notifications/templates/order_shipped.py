"""Shipping notification, sent when tracking moves an order to shipped."""


class OrderShippedTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {order_number} has shipped",
            "body": (
                f"Hi {context.get('customer_name', 'there')},\n\n"
                f"Your order {order_number} is on its way with {context.get('provider', 'our carrier')}.\n"
                f"Tracking number: {context.get('tracking_number', 'N/A')}\n"
                f"Track it here: {context.get('tracking_url', '')}\n"
            ),
        }

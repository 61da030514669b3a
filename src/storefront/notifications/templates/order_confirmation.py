"""Order confirmation message, sent once per order."""


class OrderConfirmationTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        currency = context.get("currency", "INR")
        lines = "\n".join(
            f"  {item['quantity']} x {item['title']} @ {currency} {item['price']:.2f}" for item in context.get("items", [])
        )
        return {
            "subject": f"Order {order_number} confirmed",
            "body": (
                f"Hi {context.get('customer_name', 'there')},\n\n"
                f"Thank you for your order {order_number}.\n\n"
                f"{lines}\n\n"
                f"Subtotal: {currency} {context.get('subtotal', 0):.2f}\n"
                f"Shipping: {currency} {context.get('shipping', 0):.2f}\n"
                f"Tax: {currency} {context.get('tax', 0):.2f}\n"
                f"Total: {currency} {context.get('total', 0):.2f}\n\n"
                "We'll let you know as soon as it ships."
            ),
        }

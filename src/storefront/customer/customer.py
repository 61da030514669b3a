"""Customer aggregate: contact details plus running order statistics."""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Integer, String

from storefront.domain import storefront
from storefront.errors import CustomerNotFound
from storefront.utils.money import round_money


@storefront.event(part_of="Customer")
class CustomerRegistered:
    __version__ = 1

    customer_id = String(required=True)
    email = String(required=True)
    registered_at = DateTime(required=True)


@storefront.aggregate
class Customer:
    email = String(required=True, max_length=254)
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    phone = String(max_length=20)
    total_orders = Integer(default=0, min_value=0)
    total_spent = Float(default=0.0, min_value=0.0)
    last_order_at = DateTime()
    created_at = DateTime()

    @invariant.post
    def email_must_look_like_an_address(self):
        local, _, domain = (self.email or "").partition("@")
        if not local or "." not in domain or " " in self.email:
            raise ValidationError({"email": [f"Invalid email address: {self.email!r}"]})

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def register(cls, email, first_name, last_name, phone=None):
        now = datetime.now(UTC)
        customer = cls(
            email=email.strip().lower(),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            created_at=now,
        )
        customer.raise_(
            CustomerRegistered(
                customer_id=str(customer.id),
                email=customer.email,
                registered_at=now,
            )
        )
        return customer

    def record_order(self, amount, placed_at=None):
        """Count a placed order towards the customer's statistics."""
        self.total_orders = (self.total_orders or 0) + 1
        self.total_spent = round_money((self.total_spent or 0.0) + amount)
        self.last_order_at = placed_at or datetime.now(UTC)


@storefront.repository(part_of=Customer)
class CustomerRepository:
    def require(self, customer_id) -> Customer:
        try:
            return self.get(str(customer_id))
        except ObjectNotFoundError as exc:
            raise CustomerNotFound(customer_id) from exc

    def find(self, customer_id) -> Customer | None:
        try:
            return self.get(str(customer_id))
        except ObjectNotFoundError:
            return None

    def find_by_email(self, email: str) -> Customer | None:
        matches = self._dao.query.filter(email=email.strip().lower()).all().items
        return matches[0] if matches else None

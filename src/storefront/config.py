"""Checkout and lifecycle settings.

Values come from environment variables so deployments can tune shipping,
tax and timing rules without code changes. Services receive a
``CheckoutSettings`` instance through their constructor and fall back to
``get_settings()``.
"""

import os
from dataclasses import dataclass
from decimal import Decimal


def _env_decimal(name: str, default: str) -> Decimal:
    return Decimal(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


@dataclass(frozen=True)
class CheckoutSettings:
    free_shipping_threshold: Decimal = Decimal("999")
    base_shipping_fee: Decimal = Decimal("99")
    per_item_shipping_fee: Decimal = Decimal("10")
    max_shipping_fee: Decimal = Decimal("299")
    tax_rate: Decimal = Decimal("0.18")
    currency: str = "INR"
    return_window_days: int = 30
    cart_abandon_after_hours: int = 24
    stale_pending_days: int = 3
    stale_processing_days: int = 5

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        return cls(
            free_shipping_threshold=_env_decimal("FREE_SHIPPING_THRESHOLD", "999"),
            base_shipping_fee=_env_decimal("BASE_SHIPPING_FEE", "99"),
            per_item_shipping_fee=_env_decimal("PER_ITEM_SHIPPING_FEE", "10"),
            max_shipping_fee=_env_decimal("MAX_SHIPPING_FEE", "299"),
            tax_rate=_env_decimal("TAX_RATE", "0.18"),
            currency=os.environ.get("CURRENCY", "INR"),
            return_window_days=_env_int("RETURN_WINDOW_DAYS", 30),
            cart_abandon_after_hours=_env_int("CART_ABANDON_AFTER_HOURS", 24),
            stale_pending_days=_env_int("STALE_PENDING_DAYS", 3),
            stale_processing_days=_env_int("STALE_PROCESSING_DAYS", 5),
        )


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the active settings, reading the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = CheckoutSettings.from_env()
    return _current_settings


def set_settings(settings: CheckoutSettings) -> None:
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None

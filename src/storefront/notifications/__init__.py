"""Notification registry.

``get_notifier()`` returns the process-wide order notifier: e-mail through
the adapter chosen by ``EMAIL_ADAPTER`` (only ``fake`` ships), delivered on
a thread pool of ``NOTIFICATION_WORKERS`` threads (``0`` sends inline).
"""

import os
from concurrent.futures import ThreadPoolExecutor

from storefront.notifications.email_port import EmailPort
from storefront.notifications.notifier import EmailOrderNotifier, OrderNotifier

_email_adapter: EmailPort | None = None
_current_notifier: OrderNotifier | None = None


def get_email_adapter() -> EmailPort:
    global _email_adapter
    if _email_adapter is None:
        adapter = os.environ.get("EMAIL_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.notifications.fake_email import FakeEmailAdapter

            _email_adapter = FakeEmailAdapter()
        else:
            raise ValueError(f"Unknown email adapter: {adapter}")
    return _email_adapter


def get_notifier() -> OrderNotifier:
    global _current_notifier
    if _current_notifier is None:
        workers = int(os.environ.get("NOTIFICATION_WORKERS", "2"))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") if workers > 0 else None
        _current_notifier = EmailOrderNotifier(get_email_adapter(), executor=executor)
    return _current_notifier


def set_notifier(notifier: OrderNotifier) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier, _email_adapter
    _current_notifier = None
    _email_adapter = None

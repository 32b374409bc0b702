"""Billing providers - abstracted external platform integrations."""

from marketplace.billing.providers.notifications.factory import (
    get_notification_sink,
)
from marketplace.billing.providers.payment.factory import get_payment_provider

__all__ = [
    "get_notification_sink",
    "get_payment_provider",
]

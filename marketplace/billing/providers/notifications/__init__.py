"""Seller notification delivery."""

from marketplace.billing.providers.notifications.interface import (
    NotificationSinkInterface,
)
from marketplace.billing.providers.notifications.factory import (
    get_notification_sink,
)

__all__ = [
    "NotificationSinkInterface",
    "get_notification_sink",
]

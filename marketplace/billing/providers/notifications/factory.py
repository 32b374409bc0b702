"""
Factory for getting notification sink instance.
"""

from typing import Optional

from common.providers.messaging import get_message_queue
from marketplace.billing.providers.notifications.interface import (
    NotificationSinkInterface,
)
from marketplace.billing.providers.notifications.queue_notifications import (
    QueueNotificationSink,
)

_notification_sink: Optional[NotificationSinkInterface] = None


def get_notification_sink() -> NotificationSinkInterface:
    global _notification_sink

    if _notification_sink is None:
        _notification_sink = QueueNotificationSink(get_message_queue())

    return _notification_sink

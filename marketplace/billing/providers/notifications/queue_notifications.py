"""
Queue-backed notification sink.

Publishes notifications to RabbitMQ; the notification service consumes the
queue and renders email/in-app messages.
"""

from typing import Any, Dict, Optional

from common.core.otel_axiom_exporter import get_logger
from common.core.time_utils import utcnow
from common.providers.messaging import QueueName, MessageQueueInterface
from marketplace.billing.models.domain.enums import NotificationKind
from marketplace.billing.providers.notifications.interface import (
    NotificationSinkInterface,
)

logger = get_logger(__name__)


class QueueNotificationSink(NotificationSinkInterface):
    def __init__(
        self,
        message_queue: MessageQueueInterface,
        queue: str = QueueName.SELLER_NOTIFICATIONS,
    ):
        self.message_queue = message_queue
        self.queue = queue

    async def send(
        self,
        seller_id: int,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        message = {
            "seller_id": seller_id,
            "kind": kind.value,
            "payload": payload or {},
            "sent_at": utcnow().isoformat(),
        }
        try:
            published = await self.message_queue.publish(self.queue, message)
        except Exception as e:
            logger.error(
                f"Failed to publish {kind.value} notification: {e}",
                extra={"seller_id": seller_id, "kind": kind.value},
            )
            return False

        if not published:
            logger.warning(
                f"Notification {kind.value} for seller {seller_id} was not delivered",
                extra={"seller_id": seller_id, "kind": kind.value},
            )
        return published

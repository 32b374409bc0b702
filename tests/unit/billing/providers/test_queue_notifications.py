import pytest

from common.providers.messaging import QueueName
from marketplace.billing.models.domain.enums import NotificationKind
from marketplace.billing.providers.notifications.factory import get_notification_sink
from marketplace.billing.providers.notifications.queue_notifications import (
    QueueNotificationSink,
)


@pytest.fixture
def sink(mock_message_queue):
    return QueueNotificationSink(mock_message_queue)


class TestQueueNotificationSink:
    async def test_publishes_message(self, sink, mock_message_queue):
        sent = await sink.send(
            7, NotificationKind.USAGE_WARNING, {"plan_id": "free"}
        )

        assert sent is True
        queue, message = mock_message_queue.publish.call_args.args
        assert queue == QueueName.SELLER_NOTIFICATIONS
        assert message["seller_id"] == 7
        assert message["kind"] == "usage_warning"
        assert message["payload"] == {"plan_id": "free"}
        assert "sent_at" in message

    async def test_empty_payload(self, sink, mock_message_queue):
        await sink.send(7, NotificationKind.GRACE_PERIOD_ENDED)

        _, message = mock_message_queue.publish.call_args.args
        assert message["payload"] == {}

    async def test_publish_error_is_swallowed(self, sink, mock_message_queue):
        """Test a broker outage never fails the billing operation."""
        mock_message_queue.publish.side_effect = ConnectionError("broker down")

        assert await sink.send(7, NotificationKind.LIMIT_EXCEEDED) is False

    async def test_undelivered_message(self, sink, mock_message_queue):
        mock_message_queue.publish.return_value = False

        assert await sink.send(7, NotificationKind.TRIAL_WILL_END) is False


class TestNotificationSinkFactory:
    def test_factory_returns_singleton(self, mock_notifier):
        assert get_notification_sink() is mock_notifier

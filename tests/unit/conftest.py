import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from marketplace.billing.models.domain.enums import SubscriptionStatus
from tests.factories.billing_factory import InMemoryLock, provider_subscription


@pytest.fixture
def mock_payment_provider():
    """Create a mock payment provider (Stripe) for testing."""
    provider = AsyncMock()
    provider.create_or_get_customer = AsyncMock(return_value="cus_test123")
    provider.create_subscription = AsyncMock(
        return_value=provider_subscription(external_subscription_ref="sub_new123")
    )
    provider.update_subscription_price = AsyncMock(
        return_value=provider_subscription()
    )
    provider.cancel_subscription = AsyncMock(
        return_value=provider_subscription(status=SubscriptionStatus.CANCELED)
    )
    provider.parse_event = MagicMock(return_value=None)
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def mock_notifier():
    """Create a mock notification sink for testing."""
    notifier = AsyncMock()
    notifier.send = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def mock_message_queue():
    """Create a mock message queue instance for testing."""
    queue = AsyncMock()
    queue.declare_queue = AsyncMock(return_value=True)
    queue.publish = AsyncMock(return_value=True)
    queue.connect = AsyncMock(return_value=True)
    queue.disconnect = AsyncMock(return_value=None)
    return queue


@pytest.fixture
def lock_provider():
    """In-memory lock provider with Redis lock semantics."""
    return InMemoryLock()


@pytest.fixture(autouse=True)
def mock_provider_singletons(
    mock_payment_provider, mock_notifier, mock_message_queue, lock_provider
):
    """Keep default-constructed services away from Stripe, RabbitMQ and Redis."""
    with patch(
        "marketplace.billing.providers.payment.factory._payment_provider",
        mock_payment_provider,
    ), patch(
        "marketplace.billing.providers.notifications.factory._notification_sink",
        mock_notifier,
    ), patch(
        "common.providers.messaging.factory._message_queue", mock_message_queue
    ), patch(
        "common.providers.locking.factory._lock_provider", lock_provider
    ):
        yield


@pytest.fixture
def mock_span():
    """Create a mock span instance for testing telemetry."""
    span = MagicMock()
    span.__enter__ = MagicMock(return_value=span)
    span.__exit__ = MagicMock(return_value=None)
    span.__aenter__ = AsyncMock(return_value=span)
    span.__aexit__ = AsyncMock(return_value=None)
    return span


@pytest.fixture
def mock_start_span(mock_span):
    """Create a mock start_span function that returns mock_span."""
    with patch(
        "common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span",
        return_value=mock_span,
    ) as mock:
        yield mock

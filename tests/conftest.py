# Shared pytest configuration and fixtures for all test types
import pytest
import pytest_asyncio
from datetime import timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address
from unittest.mock import patch

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.core.config import settings
from common.core.time_utils import month_bounds
from common.db.session import get_db_readonly
from common.db.base import Base
from marketplace.billing.models.database import (  # noqa: F401
    BillingEventEntity,
    PlanChangeRequestEntity,
    SubscriptionEntity,
    UsageRecordEntity,
)
from marketplace.billing.models.domain.enums import PlanId, SubscriptionStatus
from marketplace.billing.models.domain.subscription import Subscription
from marketplace.sellers.models.database import SellerEntity
from marketplace.sellers.models.domain.seller import Seller
from tests.factories.billing_factory import FIXED_NOW, MutableClock

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so transaction() commits
    release savepoints instead of ending the outer test transaction.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest.fixture
def clock():
    """Controllable clock starting at FIXED_NOW."""
    return MutableClock(FIXED_NOW)


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession):
    """Create a test client."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db_readonly] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def sample_seller(test_db: AsyncSession):
    """Create a sample seller for testing."""
    seller = SellerEntity(
        email="seller@example.com", name="Test Seller", store_name="Test Store"
    )
    test_db.add(seller)
    await test_db.commit()
    await test_db.refresh(seller)
    return Seller.model_validate(seller)


@pytest_asyncio.fixture(scope="function")
async def second_seller(test_db: AsyncSession):
    seller = SellerEntity(email="other@example.com", name="Other Seller")
    test_db.add(seller)
    await test_db.commit()
    await test_db.refresh(seller)
    return Seller.model_validate(seller)


@pytest_asyncio.fixture(scope="function")
async def free_subscription(test_db: AsyncSession, sample_seller):
    """Create an active free subscription for the current period."""
    period_start, period_end = month_bounds(FIXED_NOW)
    subscription_entity = SubscriptionEntity(
        seller_id=sample_seller.id,
        plan_id=PlanId.FREE.value,
        status=SubscriptionStatus.ACTIVE.value,
        current_period_start=period_start,
        current_period_end=period_end,
    )
    test_db.add(subscription_entity)
    await test_db.commit()
    await test_db.refresh(subscription_entity)
    return Subscription.model_validate(subscription_entity)


@pytest_asyncio.fixture(scope="function")
async def pro_subscription(test_db: AsyncSession, sample_seller):
    """Create an active pro subscription backed by a Stripe subscription."""
    subscription_entity = SubscriptionEntity(
        seller_id=sample_seller.id,
        plan_id=PlanId.PRO.value,
        status=SubscriptionStatus.ACTIVE.value,
        current_period_start=FIXED_NOW - timedelta(days=5),
        current_period_end=FIXED_NOW + timedelta(days=25),
        external_customer_ref="cus_test123",
        external_subscription_ref="sub_test123",
        external_price_ref=settings.stripe_price_id_pro,
    )
    test_db.add(subscription_entity)
    await test_db.commit()
    await test_db.refresh(subscription_entity)
    return Subscription.model_validate(subscription_entity)


@pytest_asyncio.fixture(scope="function")
async def canceled_subscription(test_db: AsyncSession, sample_seller):
    """Create a canceled subscription (previous lifecycle ended)."""
    subscription_entity = SubscriptionEntity(
        seller_id=sample_seller.id,
        plan_id=PlanId.FREE.value,
        status=SubscriptionStatus.CANCELED.value,
        current_period_start=FIXED_NOW - timedelta(days=40),
        current_period_end=FIXED_NOW - timedelta(days=10),
        canceled_at=FIXED_NOW - timedelta(days=10),
        ended_at=FIXED_NOW - timedelta(days=10),
        external_customer_ref="cus_test123",
        external_subscription_ref="sub_old123",
        external_price_ref=settings.stripe_price_id_pro,
    )
    test_db.add(subscription_entity)
    await test_db.commit()
    await test_db.refresh(subscription_entity)
    return Subscription.model_validate(subscription_entity)


"""Builders shared by the billing tests."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.config import settings
from common.providers.locking.interface import DistributedLockInterface
from marketplace.billing.models.database import SubscriptionEntity
from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    PlanId,
    SubscriptionStatus,
)
from marketplace.billing.models.domain.provider_events import (
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
)
from marketplace.billing.models.domain.subscription import Subscription
from marketplace.sellers.models.database import OrderEntity, ProductEntity

# Mid-month so period arithmetic never straddles a month boundary
FIXED_NOW = datetime(2026, 3, 15, 12, 0, 0)

WEBHOOK_SECRET = "whsec_test_secret"


class MutableClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryLock(DistributedLockInterface):
    """Single-process lock with the same contract as RedisLock."""

    def __init__(self):
        self.held: dict[str, str] = {}
        self.acquired: list[str] = []

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        if resource_key in self.held:
            return None
        token = f"token-{len(self.acquired) + 1}"
        self.held[resource_key] = token
        self.acquired.append(resource_key)
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        if self.held.get(resource_key) != lock_token:
            return False
        del self.held[resource_key]
        return True


def utc_timestamp(moment: datetime) -> int:
    return int(moment.replace(tzinfo=timezone.utc).timestamp())


def provider_subscription(**overrides: Any) -> ProviderSubscription:
    values: dict[str, Any] = {
        "external_subscription_ref": "sub_test123",
        "external_customer_ref": "cus_test123",
        "status": SubscriptionStatus.ACTIVE,
        "current_period_start": FIXED_NOW,
        "current_period_end": FIXED_NOW + timedelta(days=30),
        "price_ref": settings.stripe_price_id_pro,
        "cancel_at_period_end": False,
    }
    values.update(overrides)
    return ProviderSubscription(**values)


def subscription_event(
    seller_id: Optional[int],
    kind: BillingEventKind = BillingEventKind.SUBSCRIPTION_UPDATED,
    event_id: str = "evt_sub_1",
    **subscription_overrides: Any,
) -> ProviderEvent:
    return ProviderEvent(
        external_event_id=event_id,
        kind=kind,
        seller_id=seller_id,
        subscription=provider_subscription(**subscription_overrides),
    )


def invoice_event(
    seller_id: Optional[int],
    kind: BillingEventKind = BillingEventKind.INVOICE_PAYMENT_FAILED,
    event_id: str = "evt_inv_1",
    subscription_ref: str = "sub_test123",
) -> ProviderEvent:
    return ProviderEvent(
        external_event_id=event_id,
        kind=kind,
        seller_id=seller_id,
        invoice=ProviderInvoice(
            external_invoice_ref="in_test123",
            external_customer_ref="cus_test123",
            external_subscription_ref=subscription_ref,
            amount_due=1900,
            currency="usd",
        ),
    )


def stripe_subscription_object(
    seller_id: Optional[int] = 1,
    status: str = "active",
    price_id: Optional[str] = None,
    legacy_period: bool = False,
    **overrides: Any,
) -> dict[str, Any]:
    """Stripe subscription JSON. ``legacy_period`` puts the period on the
    subscription itself instead of on the item (pre-2025 API versions)."""
    start = utc_timestamp(FIXED_NOW)
    end = start + 30 * 24 * 3600
    item: dict[str, Any] = {
        "id": "si_test123",
        "price": {"id": price_id or settings.stripe_price_id_pro},
    }
    obj: dict[str, Any] = {
        "id": "sub_test123",
        "object": "subscription",
        "customer": "cus_test123",
        "status": status,
        "cancel_at_period_end": False,
        "items": {"object": "list", "data": [item]},
        "metadata": {"seller_id": str(seller_id)} if seller_id is not None else {},
    }
    if legacy_period:
        obj["current_period_start"] = start
        obj["current_period_end"] = end
    else:
        item["current_period_start"] = start
        item["current_period_end"] = end
    obj.update(overrides)
    return obj


def stripe_event(event_type: str, obj: dict[str, Any], event_id: str = "evt_test123") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": utc_timestamp(FIXED_NOW),
            "livemode": False,
            "data": {"object": obj},
        }
    ).encode("utf-8")


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Build a valid Stripe-Signature header for ``payload``."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"), signed.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


async def add_products(
    test_db: AsyncSession, seller_id: int, count: int, deleted: bool = False
) -> None:
    test_db.add_all(
        [
            ProductEntity(seller_id=seller_id, title=f"Product {i}", deleted=deleted)
            for i in range(count)
        ]
    )
    await test_db.commit()


async def add_orders(
    test_db: AsyncSession,
    seller_id: int,
    count: int,
    created_at: datetime = FIXED_NOW,
) -> None:
    test_db.add_all(
        [
            OrderEntity(seller_id=seller_id, total_cents=1000, created_at=created_at)
            for _ in range(count)
        ]
    )
    await test_db.commit()


async def add_subscription(
    test_db: AsyncSession,
    seller_id: int,
    plan_id: PlanId = PlanId.PRO,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    **overrides: Any,
) -> Subscription:
    values: dict[str, Any] = {
        "current_period_start": FIXED_NOW - timedelta(days=5),
        "current_period_end": FIXED_NOW + timedelta(days=25),
    }
    if plan_id.is_paid():
        values.update(
            external_customer_ref=f"cus_{seller_id}",
            external_subscription_ref=f"sub_{seller_id}",
            external_price_ref=settings.stripe_price_id_pro,
        )
    values.update(overrides)
    entity = SubscriptionEntity(
        seller_id=seller_id, plan_id=plan_id.value, status=status.value, **values
    )
    test_db.add(entity)
    await test_db.commit()
    await test_db.refresh(entity)
    return Subscription.model_validate(entity)

"""Billing repositories."""

from marketplace.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from marketplace.billing.repositories.usage_record_repository import (
    UsageRecordRepository,
)
from marketplace.billing.repositories.billing_event_repository import (
    BillingEventRepository,
)
from marketplace.billing.repositories.plan_change_repository import (
    PlanChangeRepository,
)

__all__ = [
    "SubscriptionRepository",
    "UsageRecordRepository",
    "BillingEventRepository",
    "PlanChangeRepository",
]

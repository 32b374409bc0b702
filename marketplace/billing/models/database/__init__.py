"""Database models for billing."""

from marketplace.billing.models.database.subscription import SubscriptionEntity
from marketplace.billing.models.database.usage_record import UsageRecordEntity
from marketplace.billing.models.database.billing_event import BillingEventEntity
from marketplace.billing.models.database.plan_change_request import (
    PlanChangeRequestEntity,
)

__all__ = [
    "SubscriptionEntity",
    "UsageRecordEntity",
    "BillingEventEntity",
    "PlanChangeRequestEntity",
]

"""Domain models for billing."""

from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    BillingEventType,
    MeteredResource,
    NotificationKind,
    PlanChangeStatus,
    PlanChangeType,
    PlanId,
    SellerAction,
    SubscriptionStatus,
    WebhookOutcome,
)
from marketplace.billing.models.domain.subscription import (
    PlanChangeRequest,
    Subscription,
    SubscriptionCreateModel,
    SubscriptionResult,
    SubscriptionUpdateModel,
)
from marketplace.billing.models.domain.usage import (
    ActionCheck,
    ResourceUsage,
    UsageCheckResult,
    UsageRecord,
    UsageSnapshot,
)
from marketplace.billing.models.domain.plans import (
    LimitCheck,
    PlanDefinition,
    PlanLimits,
)
from marketplace.billing.models.domain.provider_events import (
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
    WebhookResult,
)
from marketplace.billing.models.domain.sweep import GraceExpiryResult, SweepSummary

__all__ = [
    # Enums
    "BillingEventKind",
    "BillingEventType",
    "MeteredResource",
    "NotificationKind",
    "PlanChangeStatus",
    "PlanChangeType",
    "PlanId",
    "SellerAction",
    "SubscriptionStatus",
    "WebhookOutcome",
    # Subscription
    "PlanChangeRequest",
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionResult",
    "SubscriptionUpdateModel",
    # Usage
    "ActionCheck",
    "ResourceUsage",
    "UsageCheckResult",
    "UsageRecord",
    "UsageSnapshot",
    # Plans
    "LimitCheck",
    "PlanDefinition",
    "PlanLimits",
    # Provider
    "ProviderEvent",
    "ProviderInvoice",
    "ProviderSubscription",
    "WebhookResult",
    # Sweep
    "GraceExpiryResult",
    "SweepSummary",
]

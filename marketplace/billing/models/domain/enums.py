"""
Billing enums - strongly typed enumerations for subscription and billing states.
"""

from enum import Enum
from typing import Optional


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: incomplete -> active, trialing -> active, active <-> past_due,
    {trialing, active, past_due} -> canceled
    """

    TRIALING = "trialing"  # Provider trial, converts to active
    ACTIVE = "active"  # Paid (or free) and in good standing
    PAST_DUE = "past_due"  # Payment failed, grace period running
    CANCELED = "canceled"  # Terminal for this lifecycle
    INCOMPLETE = "incomplete"  # Awaiting first payment confirmation

    def is_live(self) -> bool:
        """Check if the subscription still counts as the seller's live one."""
        return self != SubscriptionStatus.CANCELED

    def is_billable(self) -> bool:
        """Check if this status should be billed."""
        return self in (
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
        )


class PlanId(str, Enum):
    """
    Plan tiers, ordered free < pro < business.

    Paid tiers map to Stripe price IDs via settings.
    """

    FREE = "free"  # $0/mo
    PRO = "pro"  # $19/mo
    BUSINESS = "business"  # $49/mo

    @property
    def rank(self) -> int:
        return _PLAN_RANK[self]

    def is_paid(self) -> bool:
        return self != PlanId.FREE

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["PlanId"]:
        """Return the plan for ``value`` or None when it is not a known plan."""
        try:
            return cls(value)
        except ValueError:
            return None


_PLAN_RANK = {PlanId.FREE: 0, PlanId.PRO: 1, PlanId.BUSINESS: 2}


class PlanChangeType(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class PlanChangeStatus(str, Enum):
    COMPLETED = "completed"  # Took effect immediately
    SCHEDULED = "scheduled"  # Takes effect at period end


class MeteredResource(str, Enum):
    """Plan-limited resources."""

    PRODUCTS = "products"
    ORDERS = "orders"


class SellerAction(str, Enum):
    """Actions other subsystems ask permission for before committing."""

    CREATE_PRODUCT = "create_product"
    PROCESS_ORDER = "process_order"

    @property
    def resource(self) -> MeteredResource:
        if self == SellerAction.CREATE_PRODUCT:
            return MeteredResource.PRODUCTS
        return MeteredResource.ORDERS


class BillingEventKind(str, Enum):
    """
    Provider event kinds the reconciler handles.

    Closed set: adding a member without a handler fails reconciler
    construction.
    """

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class BillingEventType(str, Enum):
    """Audit log event types written by this service itself."""

    SUBSCRIPTION_CREATED = "subscription_created"
    PLAN_CHANGED = "plan_changed"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    GRACE_PERIOD_STARTED = "grace_period_started"
    GRACE_PERIOD_ENDED = "grace_period_ended"
    USAGE_WARNING = "usage_warning"
    LIMIT_EXCEEDED = "limit_exceeded"


class NotificationKind(str, Enum):
    USAGE_WARNING = "usage_warning"
    LIMIT_EXCEEDED = "limit_exceeded"
    GRACE_PERIOD_STARTED = "grace_period_started"
    GRACE_PERIOD_ENDED = "grace_period_ended"
    TRIAL_WILL_END = "trial_will_end"


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    REJECTED_NO_SELLER = "rejected_no_seller"
    IGNORED = "ignored"  # Event type outside BillingEventKind
    IGNORED_STALE = "ignored_stale"  # About a replaced or already canceled subscription

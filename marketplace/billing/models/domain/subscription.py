"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from marketplace.billing.models.domain.enums import (
    PlanChangeStatus,
    PlanChangeType,
    PlanId,
    SubscriptionStatus,
)


class Subscription(BaseModel):
    """
    Seller subscription domain model.

    One row per seller. Canceled rows are kept and reused when the seller
    subscribes again.
    """

    id: int
    seller_id: int

    plan_id: PlanId
    status: SubscriptionStatus

    # Billing cycle
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False

    # Lifecycle dates
    canceled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    # Grace period after a failed payment
    grace_period_start: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    last_payment_failed: bool = False

    # External (Stripe) references
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    external_price_ref: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def is_live(self) -> bool:
        return self.status.is_live()

    def grace_period_active(self) -> bool:
        """True while a grace period is set and has not been cleared."""
        return self.grace_period_end is not None

    def grace_period_expired(self, now: datetime) -> bool:
        return (
            self.status == SubscriptionStatus.PAST_DUE
            and self.grace_period_end is not None
            and self.grace_period_end <= now
        )

    def reconcile_status(self, reported: SubscriptionStatus) -> SubscriptionStatus:
        """
        Status to store when the payment provider reports ``reported``.

        Only a successful payment lifts an active grace period, so
        active/trialing reports keep the row past_due until then.
        """
        if self.grace_period_active() and reported in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
        ):
            return SubscriptionStatus.PAST_DUE
        return reported

    @property
    def effective_plan_id(self) -> PlanId:
        """Plan whose limits apply; canceled subscriptions fall back to free."""
        if self.status == SubscriptionStatus.CANCELED:
            return PlanId.FREE
        return self.plan_id

    def days_until_renewal(self, now: datetime) -> int:
        delta = self.current_period_end - now
        return max(0, delta.days)


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    seller_id: int
    plan_id: PlanId
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    external_price_ref: Optional[str] = None

    class Config:
        use_enum_values = True


class SubscriptionUpdateModel(BaseModel):
    """Model for updating a subscription.

    Only fields that are explicitly set are written.
    """

    plan_id: Optional[PlanId] = None
    status: Optional[SubscriptionStatus] = None

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None

    canceled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    grace_period_start: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    last_payment_failed: Optional[bool] = None

    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    external_price_ref: Optional[str] = None

    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class SubscriptionResult(BaseModel):
    """Outcome of create/change operations.

    ``client_secret`` is set when the provider needs the seller to confirm
    the first payment (e.g. 3-D Secure) before the subscription activates.
    """

    subscription: Subscription
    client_secret: Optional[str] = None


class PlanChangeRequest(BaseModel):
    id: int
    seller_id: int
    subscription_id: int
    from_plan: PlanId
    to_plan: PlanId
    change_type: PlanChangeType
    status: PlanChangeStatus
    effective_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class PlanChangeRequestCreateModel(BaseModel):
    seller_id: int
    subscription_id: int
    from_plan: PlanId
    to_plan: PlanId
    change_type: PlanChangeType
    status: PlanChangeStatus
    effective_date: datetime

    class Config:
        use_enum_values = True

"""
API schemas for billing operations.

Request and response models for billing endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketplace.billing.models.domain.enums import (
    MeteredResource,
    PlanId,
    SubscriptionStatus,
    WebhookOutcome,
)
from marketplace.billing.models.domain.subscription import Subscription
from marketplace.billing.models.domain.usage import UsageRecord, UsageSnapshot


# ============================================================================
# Subscription Schemas
# ============================================================================


class CreateSubscriptionRequest(BaseModel):
    """Request to subscribe a seller to a plan."""

    plan_id: PlanId
    payment_method_id: Optional[str] = Field(
        default=None, description="Stripe payment method to charge (paid plans)"
    )


class ChangeSubscriptionRequest(BaseModel):
    """Request to upgrade or downgrade."""

    plan_id: PlanId
    effective_immediately: bool = Field(
        default=True,
        description="Apply now with proration, or at the end of the billing period",
    )


class CancelSubscriptionRequest(BaseModel):
    at_period_end: bool = True


class SubscriptionResponse(BaseModel):
    """Current subscription state."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    seller_id: int
    plan_id: PlanId
    effective_plan_id: PlanId
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    last_payment_failed: bool
    days_until_renewal: int
    client_secret: Optional[str] = Field(
        default=None,
        description="Set when the first payment needs confirmation by the seller",
    )

    @classmethod
    def from_domain(
        cls,
        subscription: Subscription,
        now: datetime,
        client_secret: Optional[str] = None,
    ) -> "SubscriptionResponse":
        return cls(
            seller_id=subscription.seller_id,
            plan_id=subscription.plan_id,
            effective_plan_id=subscription.effective_plan_id,
            status=subscription.status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            canceled_at=subscription.canceled_at,
            ended_at=subscription.ended_at,
            grace_period_end=subscription.grace_period_end,
            last_payment_failed=subscription.last_payment_failed,
            days_until_renewal=subscription.days_until_renewal(now),
            client_secret=client_secret,
        )


# ============================================================================
# Usage Schemas
# ============================================================================


class ResourceUsageResponse(BaseModel):
    current: int
    limit: Optional[int] = Field(..., description="None means unlimited")
    percentage: float


class UsageResponse(BaseModel):
    """Current-period usage against plan limits."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    seller_id: int
    plan_id: PlanId
    period_start: datetime
    period_end: datetime
    products: ResourceUsageResponse
    orders: ResourceUsageResponse
    storage_used_mb: int

    @classmethod
    def from_domain(cls, usage: UsageSnapshot) -> "UsageResponse":
        def resource(resource_type: MeteredResource) -> ResourceUsageResponse:
            item = usage.for_resource(resource_type)
            return ResourceUsageResponse(
                current=item.current,
                limit=item.limit,
                percentage=round(item.percentage, 1),
            )

        return cls(
            seller_id=usage.seller_id,
            plan_id=usage.plan_id,
            period_start=usage.period_start,
            period_end=usage.period_end,
            products=resource(MeteredResource.PRODUCTS),
            orders=resource(MeteredResource.ORDERS),
            storage_used_mb=usage.storage_used_mb,
        )


class UsageHistoryResponse(BaseModel):
    seller_id: int
    records: list[UsageRecord]


class ActionCheckResponse(BaseModel):
    """Whether the seller may perform an action right now."""

    allowed: bool
    action: str
    reason: Optional[str] = None
    current: Optional[int] = None
    limit: Optional[int] = None


# ============================================================================
# Webhook Schemas
# ============================================================================


class WebhookAckResponse(BaseModel):
    status: str = "success"
    outcome: WebhookOutcome

"""
Billing API routes.

Seller-scoped endpoints for subscription and usage management. Callers are
authenticated upstream; the seller id comes from the path.
"""

from fastapi import APIRouter, Depends, Query

from common.core.exceptions import AppException
from common.core.time_utils import utcnow
from marketplace.billing.dependencies import get_subscription_service, get_usage_meter
from marketplace.billing.models.schemas.billing import (
    ActionCheckResponse,
    CancelSubscriptionRequest,
    ChangeSubscriptionRequest,
    CreateSubscriptionRequest,
    SubscriptionResponse,
    UsageHistoryResponse,
    UsageResponse,
)
from marketplace.billing.routes.errors import to_http_exception
from marketplace.billing.services.subscription_service import SubscriptionService
from marketplace.billing.services.usage_meter_service import UsageMeterService

router = APIRouter()


# ============================================================================
# Subscription
# ============================================================================


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    seller_id: int,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Get the seller's subscription.

    Sellers created before billing existed get a free subscription on
    first access.
    """
    try:
        subscription = await subscription_service.ensure_subscription(seller_id)
    except AppException as e:
        raise to_http_exception(e)

    return SubscriptionResponse.from_domain(subscription, utcnow())


@router.post("/subscription", response_model=SubscriptionResponse, status_code=201)
async def create_subscription(
    seller_id: int,
    request: CreateSubscriptionRequest,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Subscribe a seller to a plan.

    For paid plans the response may carry a ``clientSecret``; the storefront
    must confirm the payment with it before the subscription turns active.
    """
    try:
        result = await subscription_service.create_subscription(
            seller_id=seller_id,
            plan_id=request.plan_id,
            payment_method_ref=request.payment_method_id,
        )
    except AppException as e:
        raise to_http_exception(e)

    return SubscriptionResponse.from_domain(
        result.subscription, utcnow(), client_secret=result.client_secret
    )


@router.post("/subscription/change", response_model=SubscriptionResponse)
async def change_subscription(
    seller_id: int,
    request: ChangeSubscriptionRequest,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Upgrade or downgrade the seller's plan.

    - Paid tier → update the Stripe price (prorated when immediate)
    - Free tier → cancel the Stripe subscription now or at period end
    """
    try:
        result = await subscription_service.change_subscription(
            seller_id=seller_id,
            new_plan_id=request.plan_id,
            effective_immediately=request.effective_immediately,
        )
    except AppException as e:
        raise to_http_exception(e)

    return SubscriptionResponse.from_domain(
        result.subscription, utcnow(), client_secret=result.client_secret
    )


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    seller_id: int,
    request: CancelSubscriptionRequest = CancelSubscriptionRequest(),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Cancel the seller's subscription.

    By default access continues until the end of the billing period.
    """
    try:
        subscription = await subscription_service.cancel_subscription(
            seller_id, at_period_end=request.at_period_end
        )
    except AppException as e:
        raise to_http_exception(e)

    return SubscriptionResponse.from_domain(subscription, utcnow())


# ============================================================================
# Usage
# ============================================================================


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    seller_id: int,
    usage_meter: UsageMeterService = Depends(get_usage_meter),
):
    """Get this month's usage against the seller's plan limits."""
    try:
        usage = await usage_meter.get_current_usage(seller_id)
    except AppException as e:
        raise to_http_exception(e)

    return UsageResponse.from_domain(usage)


@router.get("/usage/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    seller_id: int,
    months: int = Query(default=6, ge=1, le=24),
    usage_meter: UsageMeterService = Depends(get_usage_meter),
):
    """Get recorded usage for the last ``months`` billing periods."""
    records = await usage_meter.get_usage_history(seller_id, months=months)
    return UsageHistoryResponse(seller_id=seller_id, records=records)


@router.get("/can-perform/{action}", response_model=ActionCheckResponse)
async def can_perform_action(
    seller_id: int,
    action: str,
    usage_meter: UsageMeterService = Depends(get_usage_meter),
):
    """
    Check whether the seller may create a product or process an order.

    Never fails: metering errors answer ``allowed=true``.
    """
    check = await usage_meter.can_perform_action(seller_id, action)
    return ActionCheckResponse(**check.model_dump())

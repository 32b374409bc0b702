"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from fastapi import APIRouter, Depends, Request

from common.core.exceptions import WebhookVerificationError
from common.providers.rate_limiter.limiter import limiter
from marketplace.billing.dependencies import get_webhook_reconciler
from marketplace.billing.models.schemas.billing import WebhookAckResponse
from marketplace.billing.routes.errors import to_http_exception
from marketplace.billing.webhooks.reconciler import WebhookReconciler

router = APIRouter()


@router.post("/webhooks/stripe", response_model=WebhookAckResponse)
@limiter.exempt
async def stripe_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - webhook signature validated internally.
    Duplicates, unhandled types and events without a seller are
    acknowledged with 200 so Stripe stops retrying them.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        result = await reconciler.handle(payload, signature)
    except WebhookVerificationError as e:
        raise to_http_exception(e)

    return WebhookAckResponse(outcome=result.outcome)

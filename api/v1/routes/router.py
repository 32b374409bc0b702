from fastapi import APIRouter

from api.v1.routes import health
from marketplace.billing.routes import billing, plans, webhooks

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

# Public price list
api_router.include_router(plans.router, prefix="/billing/plans", tags=["billing"])

# Stripe calls this directly; the signature is the only authentication
api_router.include_router(webhooks.router, tags=["webhooks"])

# The gateway in front of this service authenticates the seller
api_router.include_router(
    billing.router, prefix="/sellers/{seller_id}/billing", tags=["billing"]
)

"""
Plans API routes.

Public endpoint for retrieving available subscription plans.
"""

from fastapi import APIRouter, Depends

from marketplace.billing.dependencies import get_catalog
from marketplace.billing.models.domain.plans import PlansResponse
from marketplace.billing.services.plan_catalog import PlanCatalog

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans(catalog: PlanCatalog = Depends(get_catalog)):
    """
    Get all available subscription plans.

    Returns pricing, limits, and features for each tier.
    This endpoint is public (no auth required) for pricing pages.
    """
    return catalog.plans_response()

"""
Static plan catalog.

Plan definitions are built once from settings (for the Stripe price IDs)
and never change at runtime. Every lookup is pure.
"""

from typing import Optional

from common.core.config import settings
from marketplace.billing.models.domain.enums import (
    MeteredResource,
    PlanChangeType,
    PlanId,
)
from marketplace.billing.models.domain.plans import (
    LimitCheck,
    PlanDefinition,
    PlanInfo,
    PlanLimits,
    PlansResponse,
)


def _build_plans() -> dict[PlanId, PlanDefinition]:
    return {
        PlanId.FREE: PlanDefinition(
            id=PlanId.FREE,
            name="Free",
            description="Start selling",
            price_cents=0,
            limits=PlanLimits(max_products=10, max_orders_per_period=50),
            features=(
                "Up to 10 products",
                "50 orders per month",
                "Basic storefront",
            ),
        ),
        PlanId.PRO: PlanDefinition(
            id=PlanId.PRO,
            name="Pro",
            description="For growing stores",
            price_cents=1900,
            stripe_price_id=settings.stripe_price_id_pro,
            limits=PlanLimits(max_products=100, max_orders_per_period=None),
            features=(
                "Up to 100 products",
                "Unlimited orders",
                "Custom domain",
                "Priority support",
            ),
        ),
        PlanId.BUSINESS: PlanDefinition(
            id=PlanId.BUSINESS,
            name="Business",
            description="For established sellers",
            price_cents=4900,
            stripe_price_id=settings.stripe_price_id_business,
            limits=PlanLimits(max_products=None, max_orders_per_period=None),
            features=(
                "Unlimited products",
                "Unlimited orders",
                "Advanced analytics",
                "API access",
            ),
        ),
    }


class PlanCatalog:
    """Lookup over the fixed set of plan tiers."""

    def __init__(self, plans: Optional[dict[PlanId, PlanDefinition]] = None):
        self._plans = plans or _build_plans()
        self._plans_by_price = {
            plan.stripe_price_id: plan.id
            for plan in self._plans.values()
            if plan.stripe_price_id
        }

    def get_plan(self, plan_id: Optional[PlanId | str]) -> PlanDefinition:
        """Return the plan for ``plan_id``; unknown or missing ids get the free plan."""
        parsed = plan_id if isinstance(plan_id, PlanId) else PlanId.parse(plan_id)
        if parsed is None or parsed not in self._plans:
            return self._plans[PlanId.FREE]
        return self._plans[parsed]

    def list_plans(self) -> list[PlanDefinition]:
        return sorted(self._plans.values(), key=lambda plan: plan.id.rank)

    def plan_for_price(self, price_ref: Optional[str]) -> Optional[PlanId]:
        if not price_ref:
            return None
        return self._plans_by_price.get(price_ref)

    def price_for_plan(self, plan_id: PlanId) -> Optional[str]:
        return self.get_plan(plan_id).stripe_price_id

    @staticmethod
    def limit_for(plan: PlanDefinition, resource: MeteredResource) -> Optional[int]:
        if resource == MeteredResource.PRODUCTS:
            return plan.limits.max_products
        return plan.limits.max_orders_per_period

    def check_limit(
        self, plan: PlanDefinition, resource: MeteredResource | str, current: int
    ) -> LimitCheck:
        """Compare ``current`` with the plan's limit; unlimited always allows."""
        limit = self.limit_for(plan, MeteredResource(resource))
        if limit is None:
            return LimitCheck(allowed=True, limit=None, current=current)
        return LimitCheck(allowed=current < limit, limit=limit, current=current)

    @staticmethod
    def change_type(from_plan: PlanId, to_plan: PlanId) -> PlanChangeType:
        if to_plan.rank > from_plan.rank:
            return PlanChangeType.UPGRADE
        return PlanChangeType.DOWNGRADE

    def plans_response(self) -> PlansResponse:
        return PlansResponse(
            plans=[
                PlanInfo(
                    id=plan.id,
                    name=plan.name,
                    description=plan.description,
                    price_cents=plan.price_cents,
                    price_formatted=plan.price_formatted,
                    billing_period=plan.billing_period,
                    limits=plan.limits,
                    features=list(plan.features),
                )
                for plan in self.list_plans()
            ]
        )


_catalog: Optional[PlanCatalog] = None


def get_plan_catalog() -> PlanCatalog:
    """Process-wide catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = PlanCatalog()
    return _catalog

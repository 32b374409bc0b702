"""Domain models for billing plans."""

from typing import Optional
from pydantic import BaseModel, ConfigDict

from marketplace.billing.models.domain.enums import PlanId


class PlanLimits(BaseModel):
    """Resource limits for a plan. ``None`` means unlimited."""

    model_config = ConfigDict(frozen=True)

    max_products: Optional[int]
    max_orders_per_period: Optional[int]


class PlanDefinition(BaseModel):
    """Immutable plan tier definition."""

    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str
    description: str
    price_cents: int
    billing_period: str = "month"
    stripe_price_id: Optional[str] = None
    limits: PlanLimits
    features: tuple[str, ...] = ()

    @property
    def price_formatted(self) -> str:
        if self.price_cents % 100 == 0:
            return f"${self.price_cents // 100}"
        return f"${self.price_cents / 100:.2f}"


class LimitCheck(BaseModel):
    """Result of comparing a resource count with a plan limit."""

    allowed: bool
    limit: Optional[int]
    current: int

    @property
    def unlimited(self) -> bool:
        return self.limit is None


class PlanInfo(BaseModel):
    """Plan as exposed by the public plans endpoint."""

    id: PlanId
    name: str
    description: str
    price_cents: int
    price_formatted: str
    billing_period: str
    limits: PlanLimits
    features: list[str]


class PlansResponse(BaseModel):
    """Response model for plans endpoint."""

    plans: list[PlanInfo]

"""
Domain models for usage metering and limit checks.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from marketplace.billing.models.domain.enums import (
    MeteredResource,
    PlanId,
    SellerAction,
)


class ResourceUsage(BaseModel):
    """Usage of one plan-limited resource against its limit."""

    resource: MeteredResource
    current: int
    limit: Optional[int]  # None = unlimited

    @property
    def unlimited(self) -> bool:
        return self.limit is None

    @property
    def percentage(self) -> float:
        if self.limit is None or self.limit <= 0:
            return 0.0
        return self.current / self.limit * 100

    def is_exceeded(self) -> bool:
        """Strictly over the limit (recorded state)."""
        return self.limit is not None and self.current > self.limit

    def is_at_limit(self) -> bool:
        """At or over the limit (no further resource may be added)."""
        return self.limit is not None and self.current >= self.limit

    def warning_due(self, threshold: float) -> bool:
        return self.limit is not None and self.current >= self.limit * threshold


class UsageSnapshot(BaseModel):
    """Current-period usage for a seller."""

    seller_id: int
    plan_id: PlanId
    period_start: datetime
    period_end: datetime
    products: ResourceUsage
    orders: ResourceUsage
    storage_used_mb: int = 0

    def resources(self) -> list[ResourceUsage]:
        return [self.products, self.orders]

    def for_resource(self, resource: MeteredResource) -> ResourceUsage:
        if resource == MeteredResource.PRODUCTS:
            return self.products
        return self.orders

    def limit_exceeded(self) -> bool:
        return any(usage.is_exceeded() for usage in self.resources())


class UsageRecord(BaseModel):
    """Persisted per-period usage row."""

    id: int
    seller_id: int
    subscription_id: Optional[int] = None
    period_start: datetime
    period_end: datetime
    products_used: int
    orders_processed: int
    storage_used_mb: int
    products_limit: Optional[int] = None
    orders_limit: Optional[int] = None
    limit_exceeded: bool
    warnings_sent: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UsageRecordUpsertModel(BaseModel):
    seller_id: int
    subscription_id: Optional[int] = None
    period_start: datetime
    period_end: datetime
    products_used: int
    orders_processed: int
    storage_used_mb: int = 0
    products_limit: Optional[int] = None
    orders_limit: Optional[int] = None
    limit_exceeded: bool


class UsageCheckResult(BaseModel):
    """Outcome of recording usage for the current period."""

    record: UsageRecord
    usage: UsageSnapshot
    limit_exceeded: bool
    warning_resources: list[MeteredResource] = []
    warning_sent: bool = False
    limit_exceeded_notified: bool = False


class ActionCheck(BaseModel):
    """Answer to "may this seller perform this action now?"."""

    allowed: bool
    action: str
    reason: Optional[str] = None
    current: Optional[int] = None
    limit: Optional[int] = None

    @classmethod
    def allow(cls, action: SellerAction | str) -> "ActionCheck":
        return cls(allowed=True, action=str(getattr(action, "value", action)))

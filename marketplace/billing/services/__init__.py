"""Billing services."""

from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog
from marketplace.billing.services.subscription_service import SubscriptionService
from marketplace.billing.services.grace_period_service import GracePeriodService
from marketplace.billing.services.usage_meter_service import UsageMeterService
from marketplace.billing.services.billing_sweep_service import BillingSweepService

__all__ = [
    "PlanCatalog",
    "get_plan_catalog",
    "SubscriptionService",
    "GracePeriodService",
    "UsageMeterService",
    "BillingSweepService",
]

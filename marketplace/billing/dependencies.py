"""
FastAPI dependencies for billing routes.

Routes depend on these instead of constructing services directly so tests
can swap them through ``app.dependency_overrides``.
"""

from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog
from marketplace.billing.services.subscription_service import SubscriptionService
from marketplace.billing.services.usage_meter_service import UsageMeterService
from marketplace.billing.webhooks.reconciler import WebhookReconciler


def get_subscription_service() -> SubscriptionService:
    return SubscriptionService()


def get_usage_meter() -> UsageMeterService:
    return UsageMeterService()


def get_webhook_reconciler() -> WebhookReconciler:
    return WebhookReconciler()


def get_catalog() -> PlanCatalog:
    return get_plan_catalog()

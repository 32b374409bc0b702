"""
Usage metering and plan limit enforcement.

Usage is counted per calendar month. Other subsystems call
can_perform_action() before creating a product or accepting an order; the
sweep calls record_usage_and_check_limits() to persist the period's counts
and send warnings.
"""

from datetime import timedelta
from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import Clock, month_bounds, shift_months, utcnow
from common.db.context import readonly
from common.db.scoped import transaction
from marketplace.billing.models.domain.billing_event import BillingEventCreateModel
from marketplace.billing.models.domain.enums import (
    BillingEventType,
    MeteredResource,
    NotificationKind,
    PlanId,
    SellerAction,
)
from marketplace.billing.models.domain.usage import (
    ActionCheck,
    ResourceUsage,
    UsageCheckResult,
    UsageRecord,
    UsageRecordUpsertModel,
    UsageSnapshot,
)
from marketplace.billing.providers.notifications.factory import get_notification_sink
from marketplace.billing.providers.notifications.interface import (
    NotificationSinkInterface,
)
from marketplace.billing.repositories.billing_event_repository import (
    BillingEventRepository,
)
from marketplace.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from marketplace.billing.repositories.usage_record_repository import (
    UsageRecordRepository,
)
from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog
from marketplace.sellers.repositories.seller_repository import SellerRepository

logger = get_logger(__name__)

_LIMIT_REASONS = {
    MeteredResource.PRODUCTS: "Product limit reached ({current}/{limit}). Please upgrade your plan.",
    MeteredResource.ORDERS: "Monthly order limit reached ({current}/{limit}). Please upgrade your plan.",
}


class UsageMeterService:
    """Service for usage tracking against plan limits."""

    def __init__(
        self,
        notifier: Optional[NotificationSinkInterface] = None,
        catalog: Optional[PlanCatalog] = None,
        clock: Clock = utcnow,
    ):
        self.subscription_repo = SubscriptionRepository()
        self.usage_repo = UsageRecordRepository()
        self.billing_event_repo = BillingEventRepository()
        self.seller_repo = SellerRepository()
        self.notifier = notifier or get_notification_sink()
        self.catalog = catalog or get_plan_catalog()
        self.clock = clock

    @trace_span
    async def get_current_usage(self, seller_id: int) -> UsageSnapshot:
        """
        Count this month's usage for a seller.

        Sellers without a subscription row are metered against the free plan.

        Raises:
            NotFoundError: seller does not exist
        """
        seller = await self.seller_repo.get(seller_id)
        if not seller:
            raise NotFoundError(f"Seller {seller_id} not found")

        subscription = await self.subscription_repo.get_by_seller_id(seller_id)
        plan_id = subscription.effective_plan_id if subscription else PlanId.FREE
        plan = self.catalog.get_plan(plan_id)

        period_start, period_end = month_bounds(self.clock())
        products = await self.seller_repo.count_live_products(seller_id)
        orders = await self.seller_repo.count_orders_between(
            seller_id, period_start, period_end
        )

        return UsageSnapshot(
            seller_id=seller_id,
            plan_id=plan.id,
            period_start=period_start,
            period_end=period_end,
            products=ResourceUsage(
                resource=MeteredResource.PRODUCTS,
                current=products,
                limit=self.catalog.limit_for(plan, MeteredResource.PRODUCTS),
            ),
            orders=ResourceUsage(
                resource=MeteredResource.ORDERS,
                current=orders,
                limit=self.catalog.limit_for(plan, MeteredResource.ORDERS),
            ),
        )

    @trace_span
    async def record_usage_and_check_limits(self, seller_id: int) -> UsageCheckResult:
        """
        Persist this period's usage and notify the seller when needed.

        - ``limit_exceeded`` is set when a limited resource is strictly over
          its limit; the seller is notified the first time a period flips.
        - A warning goes out when any limited resource reaches the warning
          threshold, at most once per cooldown window per seller.
        """
        now = self.clock()
        threshold = settings.usage_warning_threshold

        async with transaction():
            usage = await self.get_current_usage(seller_id)
            subscription = await self.subscription_repo.get_by_seller_id(seller_id)

            previous = await self.usage_repo.get_for_period_for_update(
                seller_id, usage.period_start
            )
            limit_exceeded = usage.limit_exceeded()
            record = await self.usage_repo.upsert(
                UsageRecordUpsertModel(
                    seller_id=seller_id,
                    subscription_id=subscription.id if subscription else None,
                    period_start=usage.period_start,
                    period_end=usage.period_end,
                    products_used=usage.products.current,
                    orders_processed=usage.orders.current,
                    storage_used_mb=usage.storage_used_mb,
                    products_limit=usage.products.limit,
                    orders_limit=usage.orders.limit,
                    limit_exceeded=limit_exceeded,
                )
            )

            newly_exceeded = limit_exceeded and not (
                previous is not None and previous.limit_exceeded
            )
            if newly_exceeded:
                await self._record_event(
                    record, BillingEventType.LIMIT_EXCEEDED, self._usage_payload(usage)
                )

            warning_resources = [
                resource_usage.resource
                for resource_usage in usage.resources()
                if resource_usage.warning_due(threshold)
            ]
            warning_sent = False
            if warning_resources:
                since = now - timedelta(hours=settings.usage_warning_cooldown_hours)
                recent = await self.billing_event_repo.get_latest(
                    seller_id, BillingEventType.USAGE_WARNING.value, since=since
                )
                if recent is None:
                    await self._record_event(
                        record,
                        BillingEventType.USAGE_WARNING,
                        self._usage_payload(usage, warning_resources),
                    )
                    await self.usage_repo.increment_warnings_sent(record.id)
                    record = record.model_copy(
                        update={"warnings_sent": record.warnings_sent + 1}
                    )
                    warning_sent = True
                else:
                    logger.debug(
                        f"Usage warning for seller {seller_id} suppressed, last sent at {recent.processed_at}"
                    )

        if newly_exceeded:
            logger.warning(
                f"Seller {seller_id} exceeded plan limits",
                extra={"seller_id": seller_id, "plan_id": usage.plan_id.value},
            )
            await self.notifier.send(
                seller_id, NotificationKind.LIMIT_EXCEEDED, self._usage_payload(usage)
            )
        if warning_sent:
            logger.info(
                f"Sending usage warning to seller {seller_id}",
                extra={
                    "seller_id": seller_id,
                    "resources": [resource.value for resource in warning_resources],
                },
            )
            await self.notifier.send(
                seller_id,
                NotificationKind.USAGE_WARNING,
                self._usage_payload(usage, warning_resources),
            )

        return UsageCheckResult(
            record=record,
            usage=usage,
            limit_exceeded=limit_exceeded,
            warning_resources=warning_resources,
            warning_sent=warning_sent,
            limit_exceeded_notified=newly_exceeded,
        )

    @trace_span
    async def can_perform_action(self, seller_id: int, action: str) -> ActionCheck:
        """
        Check whether the seller's plan allows one more of ``action``.

        Fails open: unknown actions and metering errors allow the action, so a
        billing outage never blocks selling.
        """
        try:
            parsed = SellerAction(action)
        except ValueError:
            logger.warning(
                f"Unknown action {action!r} in limit check, allowing",
                extra={"seller_id": seller_id, "action": action},
            )
            return ActionCheck.allow(action)

        try:
            usage = await self.get_current_usage(seller_id)
        except Exception as e:
            logger.error(
                f"Usage check failed for seller {seller_id}, allowing {parsed.value}: {e}",
                extra={"seller_id": seller_id, "action": parsed.value},
                exc_info=True,
            )
            return ActionCheck.allow(parsed)

        resource_usage = usage.for_resource(parsed.resource)
        check = self.catalog.check_limit(
            self.catalog.get_plan(usage.plan_id),
            parsed.resource,
            resource_usage.current,
        )
        if check.allowed:
            return ActionCheck(
                allowed=True,
                action=parsed.value,
                current=check.current,
                limit=check.limit,
            )

        return ActionCheck(
            allowed=False,
            action=parsed.value,
            reason=_LIMIT_REASONS[parsed.resource].format(
                current=check.current, limit=check.limit
            ),
            current=check.current,
            limit=check.limit,
        )

    @trace_span
    @readonly
    async def get_usage_history(
        self, seller_id: int, months: int = 6
    ) -> list[UsageRecord]:
        """Recorded usage for the last ``months`` periods (current included), newest first."""
        period_start, _ = month_bounds(self.clock())
        since = shift_months(period_start, -(max(months, 1) - 1))
        return await self.usage_repo.get_history(seller_id, since)

    @staticmethod
    def _usage_payload(
        usage: UsageSnapshot,
        resources: Optional[list[MeteredResource]] = None,
    ) -> dict:
        selected = (
            [usage.for_resource(resource) for resource in resources]
            if resources
            else usage.resources()
        )
        return {
            "plan_id": usage.plan_id.value,
            "period_start": usage.period_start.isoformat(),
            "usage": {
                resource_usage.resource.value: {
                    "current": resource_usage.current,
                    "limit": resource_usage.limit,
                    "percentage": round(resource_usage.percentage, 1),
                }
                for resource_usage in selected
            },
        }

    async def _record_event(
        self, record: UsageRecord, event_type: BillingEventType, payload: dict
    ) -> None:
        await self.billing_event_repo.create(
            BillingEventCreateModel(
                seller_id=record.seller_id,
                subscription_id=record.subscription_id,
                event_type=event_type.value,
                payload=payload,
                processed_at=self.clock(),
            )
        )

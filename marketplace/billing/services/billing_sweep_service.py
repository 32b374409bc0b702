"""
Periodic billing sweep.

Records usage for every seller, expires due grace periods and counts
upcoming renewals. A Redis lock keeps concurrent replicas from sweeping at
the same time.
"""

from datetime import timedelta
from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import Clock, utcnow
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from marketplace.billing.models.domain.sweep import SweepSummary
from marketplace.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from marketplace.billing.services.grace_period_service import GracePeriodService
from marketplace.billing.services.usage_meter_service import UsageMeterService
from marketplace.sellers.repositories.seller_repository import SellerRepository

logger = get_logger(__name__)

SWEEP_LOCK_KEY = "billing:sweep"


class BillingSweepService:
    def __init__(
        self,
        usage_meter: Optional[UsageMeterService] = None,
        grace_periods: Optional[GracePeriodService] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
        clock: Clock = utcnow,
    ):
        self.seller_repo = SellerRepository()
        self.subscription_repo = SubscriptionRepository()
        self.usage_meter = usage_meter or UsageMeterService(clock=clock)
        self.grace_periods = grace_periods or GracePeriodService(clock=clock)
        self.lock_provider = lock_provider or get_lock_provider()
        self.clock = clock

    @trace_span
    async def run(self) -> SweepSummary:
        """Run one sweep. Returns a skipped summary if another replica holds the lock."""
        summary = SweepSummary(started_at=self.clock())

        async with self.lock_provider.hold(
            SWEEP_LOCK_KEY, settings.billing_sweep_lock_ttl_seconds
        ) as token:
            if token is None:
                logger.info("Billing sweep already running elsewhere, skipping")
                summary.skipped = True
                summary.finished_at = self.clock()
                return summary

            await self._record_usage(summary)
            await self._expire_grace_periods(summary)
            await self._count_renewals(summary)

        summary.finished_at = self.clock()
        logger.info(
            f"Billing sweep finished: {summary.sellers_processed} sellers, "
            f"{summary.grace_periods_expired} grace periods expired, "
            f"{len(summary.errors)} errors",
            extra=summary.model_dump(mode="json", exclude={"errors"}),
        )
        return summary

    async def _record_usage(self, summary: SweepSummary) -> None:
        for seller_id in await self.seller_repo.get_all_ids():
            summary.sellers_processed += 1
            try:
                result = await self.usage_meter.record_usage_and_check_limits(
                    seller_id
                )
            except Exception as e:
                logger.error(
                    f"Failed to record usage for seller {seller_id}: {e}",
                    extra={"seller_id": seller_id},
                    exc_info=True,
                )
                summary.errors[seller_id] = str(e)
                continue

            summary.usage_recorded += 1
            if result.limit_exceeded:
                summary.limits_exceeded += 1
            if result.warning_sent:
                summary.warnings_sent += 1

    async def _expire_grace_periods(self, summary: SweepSummary) -> None:
        result = await self.grace_periods.expire_due(self.clock())
        summary.grace_periods_expired = len(result.expired_seller_ids)
        summary.errors.update(result.errors)

    async def _count_renewals(self, summary: SweepSummary) -> None:
        now = self.clock()
        renewing = await self.subscription_repo.get_renewing_between(
            now, now + timedelta(days=settings.renewal_lookahead_days)
        )
        summary.renewals_upcoming = len(renewing)
        if renewing:
            logger.info(
                f"{len(renewing)} subscriptions renew in the next {settings.renewal_lookahead_days} days"
            )

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.providers.locking.factory import get_lock_provider
from common.workers.base_worker import PeriodicWorker
from marketplace.billing.models.domain.sweep import SweepSummary
from marketplace.billing.services.billing_sweep_service import BillingSweepService

logger = get_logger(__name__)


class BillingSweepWorker(PeriodicWorker):
    """Runs the billing sweep on a fixed interval."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        sweep_service: Optional[BillingSweepService] = None,
    ):
        super().__init__(
            name="billing_sweep",
            interval_seconds=interval_seconds
            or settings.billing_sweep_interval_seconds,
        )
        self.lock_provider = get_lock_provider()
        self.sweep_service = sweep_service or BillingSweepService(
            lock_provider=self.lock_provider
        )
        self.last_summary: Optional[SweepSummary] = None

    async def run_once(self):
        summary = await self.sweep_service.run()
        self.last_summary = summary
        if summary.skipped:
            return
        if summary.errors:
            logger.warning(
                f"Billing sweep finished with {len(summary.errors)} seller errors",
                extra={"failed_seller_ids": list(summary.errors)},
            )

import pytest
from unittest.mock import AsyncMock, MagicMock

from marketplace.billing.models.domain.sweep import SweepSummary
from marketplace.billing.workers.billing_sweep_worker import BillingSweepWorker
from tests.factories.billing_factory import FIXED_NOW


@pytest.fixture
def sweep_service():
    service = MagicMock()
    service.run = AsyncMock(
        return_value=SweepSummary(
            started_at=FIXED_NOW, finished_at=FIXED_NOW, sellers_processed=2
        )
    )
    return service


class TestBillingSweepWorker:
    def test_defaults_from_settings(self, lock_provider):
        worker = BillingSweepWorker()

        assert worker.name == "billing_sweep"
        assert worker.interval_seconds == 3600
        assert worker.lock_provider is lock_provider
        assert worker.sweep_service.lock_provider is lock_provider

    async def test_run_once_keeps_summary(self, sweep_service):
        worker = BillingSweepWorker(interval_seconds=5, sweep_service=sweep_service)

        await worker.run_once()

        sweep_service.run.assert_awaited_once()
        assert worker.last_summary.sellers_processed == 2

    async def test_run_once_with_seller_errors(self, sweep_service):
        sweep_service.run.return_value = SweepSummary(
            started_at=FIXED_NOW, errors={7: "timeout"}
        )
        worker = BillingSweepWorker(interval_seconds=5, sweep_service=sweep_service)

        await worker.run_once()

        assert worker.last_summary.errors == {7: "timeout"}

    async def test_loop_runs_sweep_until_stopped(
        self, sweep_service, mock_message_queue
    ):
        worker = BillingSweepWorker(interval_seconds=0.01, sweep_service=sweep_service)

        async def run_then_stop():
            if sweep_service.run.await_count >= 2:
                await worker.stop()
            return SweepSummary(started_at=FIXED_NOW)

        sweep_service.run.side_effect = run_then_stop

        await worker.start()

        assert sweep_service.run.await_count == 2
        assert worker.iterations == 2
        assert worker.running is False
        mock_message_queue.connect.assert_awaited_once()
        mock_message_queue.disconnect.assert_awaited_once()

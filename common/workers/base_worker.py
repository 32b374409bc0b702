import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.providers.messaging.factory import get_message_queue
from common.providers.messaging.interface import MessageQueueInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    """Base worker class for jobs that run on a fixed interval."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        worker_id: Optional[str] = None,
        run_immediately: bool = True,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_worker_{uuid4()}"
        self.run_immediately = run_immediately
        self.message_queue: Optional[MessageQueueInterface] = None
        self.running = False
        self.iterations = 0
        self._stop_event = asyncio.Event()

    async def setup(self):
        """Initialize worker dependencies."""
        try:
            # Notifications are published from inside the job
            self.message_queue = get_message_queue()
            await self.message_queue.connect()

            logger.info(f"Worker {self.worker_id} setup completed")

        except Exception as e:
            logger.error(f"Error setting up worker {self.worker_id}: {e}")
            raise

    async def cleanup(self):
        """Cleanup worker resources."""
        try:
            if self.message_queue:
                await self.message_queue.disconnect()

            # Cleanup lock provider if this worker has one
            if hasattr(self, "lock_provider"):
                await self.lock_provider.disconnect()

            logger.info(f"Worker {self.worker_id} cleanup completed")
        except Exception as e:
            logger.error(f"Error cleaning up worker {self.worker_id}: {e}")

    async def start(self):
        """Start the worker loop. Returns once stop() is called."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event.clear()
        logger.info(
            f"Starting worker {self.worker_id} (every {self.interval_seconds}s)"
        )

        try:
            await self.setup()
            if not self.run_immediately:
                await self._sleep()
            while self.running:
                await self._run_iteration()
                await self._sleep()
        finally:
            self.running = False
            await self.cleanup()

    async def stop(self):
        """Stop the worker."""
        self.running = False
        self._stop_event.set()
        logger.info(f"Stopping worker {self.worker_id}")

    async def _sleep(self):
        try:
            await asyncio.wait_for(self._stop_event.wait(), self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_iteration(self):
        """Run one job iteration; failures are logged and the loop continues."""
        self.iterations += 1
        try:
            await self.run_once()
        except Exception as e:
            logger.error(
                f"Error in worker {self.worker_id} iteration {self.iterations}: {e}",
                exc_info=True,
            )

    @abstractmethod
    async def run_once(self):
        """Run the job once. Must be implemented by subclasses."""
        pass

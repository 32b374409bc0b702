"""
Process entry point for long-running workers.

Sets up telemetry and logging, builds the worker, and runs it until SIGINT or
SIGTERM asks it to stop. Kubernetes sends SIGTERM on rollout, so a sweep that
is mid-run finishes its current seller before the pod exits.
"""

import asyncio
import logging
import signal
from typing import Any, Callable, Optional

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class WorkerLauncher:
    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[Any] = None

    def run(
        self,
        worker_factory: Callable,
        worker_name: str,
        setup_logging: bool = True,
        log_level: str = "INFO",
        factory_args: tuple = (),
        factory_kwargs: Optional[dict] = None,
    ):
        """
        Build the worker with ``worker_factory(*factory_args, **factory_kwargs)``
        and block until it stops.
        """
        _initialize_telemetry()
        if setup_logging:
            logging.basicConfig(
                level=getattr(logging, log_level), format=LOG_FORMAT, force=True
            )

        self.logger.info(f"Configuring {worker_name}...")
        worker = worker_factory(*factory_args, **(factory_kwargs or {}))

        try:
            asyncio.run(self._serve(worker, worker_name))
        except KeyboardInterrupt:
            self.logger.info(f"{worker_name} interrupted, exiting")

    def run_with_cli(
        self,
        worker_factory: Callable,
        worker_name: str,
        cli_setup_func: Callable[[], tuple],
        setup_logging: bool = True,
    ):
        """
        Same as run(), with arguments taken from the command line.

        ``cli_setup_func`` returns ``(args, factory_args, factory_kwargs)``;
        ``args.log_level`` picks the root log level when present.
        """
        args, factory_args, factory_kwargs = cli_setup_func()
        self.run(
            worker_factory=worker_factory,
            worker_name=worker_name,
            setup_logging=setup_logging,
            log_level=getattr(args, "log_level", "INFO"),
            factory_args=factory_args,
            factory_kwargs=factory_kwargs,
        )

    async def _serve(self, worker: Any, worker_name: str):
        self.worker_instance = worker

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._request_stop, signum)

        self.logger.info(f"Starting {worker_name}...")
        try:
            await worker.start()
        except Exception as e:
            self.logger.error(f"{worker_name} crashed: {e}", exc_info=True)
        finally:
            self.logger.info(f"{worker_name} shutdown complete")

    def _request_stop(self, signum: int) -> None:
        self.logger.info(f"Received signal {signum}, stopping after current sweep")
        if self.worker_instance:
            asyncio.ensure_future(self.worker_instance.stop())

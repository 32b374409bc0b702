import argparse

from common.core.config import settings
from common.workers.launcher import WorkerLauncher
from marketplace.billing.workers.billing_sweep_worker import BillingSweepWorker


def setup_cli():
    """Setup CLI arguments and return parsed args with factory parameters."""
    parser = argparse.ArgumentParser(description="Billing Sweep Worker")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.billing_sweep_interval_seconds,
        help=f"Seconds between sweeps (default: {settings.billing_sweep_interval_seconds})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    factory_args = (args.interval,)
    factory_kwargs = {}

    return args, factory_args, factory_kwargs


def main():
    WorkerLauncher().run_with_cli(
        worker_factory=BillingSweepWorker,
        worker_name="Billing Sweep Worker",
        cli_setup_func=setup_cli,
    )


if __name__ == "__main__":
    main()

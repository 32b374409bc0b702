from unittest.mock import patch

from common.core.config import settings
from workers.run_billing_sweep_worker import main, setup_cli


class TestBillingSweepWorkerCli:
    def test_defaults(self):
        with patch("sys.argv", ["run_billing_sweep_worker.py"]):
            args, factory_args, factory_kwargs = setup_cli()

        assert args.log_level == "INFO"
        assert factory_args == (settings.billing_sweep_interval_seconds,)
        assert factory_kwargs == {}

    def test_custom_interval(self):
        with patch(
            "sys.argv",
            ["run_billing_sweep_worker.py", "--interval", "60", "--log-level", "DEBUG"],
        ):
            args, factory_args, _ = setup_cli()

        assert args.log_level == "DEBUG"
        assert factory_args == (60.0,)

    def test_main_hands_cli_to_launcher(self):
        with patch(
            "workers.run_billing_sweep_worker.WorkerLauncher.run"
        ) as mock_run, patch(
            "sys.argv", ["run_billing_sweep_worker.py", "--log-level", "WARNING"]
        ):
            main()

        kwargs = mock_run.call_args.kwargs
        assert kwargs["worker_name"] == "Billing Sweep Worker"
        assert kwargs["log_level"] == "WARNING"
        assert kwargs["factory_args"] == (settings.billing_sweep_interval_seconds,)

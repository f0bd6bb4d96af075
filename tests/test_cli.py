"""
Tests for the command line interface.
"""

from unittest.mock import patch

import pytest
import yaml

from conftest import FakeForecastService, InMemoryObjectStore

from slot_forecast.cli.main import create_parser, main_cli
from slot_forecast.contracts import JobKind
from slot_forecast.orchestration import PipelineRunner


@pytest.fixture
def config_file(tmp_path, daily_input, hourly_input):
    path = tmp_path / "pipeline.yaml"
    path.write_text(yaml.safe_dump({
        "bucket": "test-bucket",
        "role_arn": "arn:aws:iam::123456789012:role/ForecastS3Access",
        "output_dir": str(tmp_path / "out"),
        "variants": {
            "daily": {"base": "daily", "input_path": str(daily_input)},
            "hourly": {"base": "hourly", "input_path": str(hourly_input)},
        },
        "polling": {"heavy_interval_seconds": 0, "light_interval_seconds": 0, "max_polls": 10},
    }))
    return path


def fake_runner(scripts=None):
    """Patch target building runners on in-memory doubles."""
    store = InMemoryObjectStore()
    service = FakeForecastService(store=store, scripts=scripts)

    def build(config, reporter=None, **kwargs):
        return PipelineRunner(config, service=service, store=store, reporter=reporter)

    return build, service, store


def run_cli(argv):
    with patch("slot_forecast.cli.main.setup_logging"):
        main_cli(argv)


class TestParser:
    def test_global_options(self):
        args = create_parser().parse_args(["--config", "x.yaml", "--no-progress", "all", "--concurrent"])

        assert args.config == "x.yaml"
        assert args.no_progress
        assert args.concurrent
        assert args.func.__name__ == "cmd_all"

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main_cli([])
        assert exc_info.value.code == 1
        assert "Slot Availability Forecast" in capsys.readouterr().out


class TestCommands:
    def test_daily_success(self, config_file, capsys):
        build, service, _ = fake_runner()

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build), \
                patch.object(PipelineRunner, "install_signal_handlers"):
            run_cli(["--config", str(config_file), "--no-progress", "daily"])

        out = capsys.readouterr().out
        assert "✅ daily run" in out
        assert "submit_forecast_export" in service.operations()

    def test_failed_run_exits_nonzero(self, config_file, capsys):
        build, _, _ = fake_runner({JobKind.FORECAST_GENERATION: ["CREATE_FAILED"]})

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build), \
                patch.object(PipelineRunner, "install_signal_handlers"):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(["--config", str(config_file), "--no-progress", "hourly"])

        assert exc_info.value.code == 1
        assert "❌ hourly run" in capsys.readouterr().out

    def test_reshape_command(self, config_file, capsys):
        build, _, store = fake_runner()

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build):
            run_cli(["--config", str(config_file), "reshape", "daily", "--run-id", "r1"])

        assert "Uploaded 14 daily partitions" in capsys.readouterr().out
        assert any(key.startswith("forecast/input/r1/days/") for key in store.objects)

    def test_materialize_missing_export(self, config_file, capsys):
        build, _, _ = fake_runner()

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build):
            with pytest.raises(SystemExit):
                run_cli(["--config", str(config_file), "materialize", "r1"])

        assert "Materialization failed" in capsys.readouterr().out

    def test_reshape_unknown_variant(self, config_file, capsys):
        build, _, store = fake_runner()

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(["--config", str(config_file), "reshape", "weekly"])

        assert exc_info.value.code == 1
        assert "❌ Variant weekly is not configured" in capsys.readouterr().out
        assert store.objects == {}

    def test_all_with_unknown_variant(self, config_file, capsys):
        build, service, _ = fake_runner()

        with patch("slot_forecast.cli.main.PipelineRunner", side_effect=build), \
                patch.object(PipelineRunner, "install_signal_handlers"):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(["--config", str(config_file), "--no-progress", "all", "--variants", "daily", "weekly"])

        assert exc_info.value.code == 1
        assert "❌ Variant weekly" in capsys.readouterr().out
        assert service.calls == []

    def test_plot_unknown_area(self, tmp_path, capsys):
        actuals = tmp_path / "actuals.csv"
        actuals.write_text("IT,SV1,2024-01-31,12\n")
        predictions = tmp_path / "export_r1.csv"
        predictions.write_text("metric_name,date,p10,p50,p90\nSV1,2024-02-01T00:00:00Z,9.0,11.0,13.0\n")

        with pytest.raises(SystemExit) as exc_info:
            run_cli(["plot", "--actuals", str(actuals), "--predictions", str(predictions), "--areas", "XX"])

        assert exc_info.value.code == 1
        assert "❌ Plot failed" in capsys.readouterr().out
        assert not predictions.with_suffix(".png").exists()

    def test_plot_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_cli(["plot", "--actuals", str(tmp_path / "nope.csv"), "--predictions", str(tmp_path / "none.csv")])

        assert exc_info.value.code == 1
        assert "❌ Plot failed" in capsys.readouterr().out

    def test_invalid_metric_override(self, config_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_cli(["--config", str(config_file), "--metric", "nope", "config"])

        assert exc_info.value.code == 2
        assert "Configuration error" in capsys.readouterr().out

    def test_init_config(self, tmp_path, capsys):
        run_cli(["init-config", str(tmp_path / "configs")])

        assert (tmp_path / "configs" / "pipeline.yaml").exists()
        assert "variants_sample.yaml" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

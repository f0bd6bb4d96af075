#!/usr/bin/env python3
"""
Main Command Line Interface for the Slot Availability Forecast

This provides a unified entry point for all pipeline operations:
- Daily and hourly forecast runs
- Input reshaping and upload only
- Re-materializing an existing forecast export
- Plotting actuals against the forecast
- Configuration management
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..config import ConfigurationError, ConfigurationLoader, ConfigurationManager, EnvironmentType
from ..config.integration_config import ForecastPipelineConfiguration
from ..contracts.errors import ForecastPipelineError
from ..orchestration import PipelineExecution, PipelineRunner
from ..utils.rich_progress import RichJobProgress


def setup_logging(level: str = "INFO", log_file: Optional[str] = "slot_forecast.log"):
    """Setup logging for CLI operations."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def load_config(args) -> ForecastPipelineConfiguration:
    """Load the pipeline configuration named on the command line."""
    environment = EnvironmentType(args.environment) if args.environment else None
    config = ConfigurationLoader().load_pipeline_config(args.config, environment)

    overrides = {}
    if getattr(args, 'metric', None):
        overrides["metric"] = args.metric
    if getattr(args, 'output_dir', None):
        overrides["output_dir"] = Path(args.output_dir)
    if overrides:
        try:
            config = ForecastPipelineConfiguration.model_validate({**config.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid command line override: {e}")
    return config


def build_runner(args, config: ForecastPipelineConfiguration, reporter=None) -> PipelineRunner:
    runner = PipelineRunner(config, reporter=reporter)
    runner.install_signal_handlers()
    return runner


def report_executions(executions: List[PipelineExecution]) -> bool:
    """Print a summary per run; return True when every run succeeded."""
    all_ok = True
    for execution in executions:
        summary = execution.summary()
        if execution.succeeded:
            print(f"✅ {summary['variant']} run {summary['run_id']}: {summary['artifact']}")
        else:
            all_ok = False
            print(f"❌ {summary['variant']} run {summary['run_id']} {summary['state']}: {summary['error']}")
        for name, value in summary['identifiers'].items():
            if value:
                print(f"   {name}: {value}")
    return all_ok


def _run(args, variant_names: List[str], concurrent: bool = False):
    config = load_config(args)
    reporter = None if args.no_progress else RichJobProgress()

    try:
        runner = build_runner(args, config, reporter)
        if reporter is not None:
            reporter.start()
        try:
            executions = runner.run_all(variant_names, concurrent=concurrent)
        finally:
            if reporter is not None:
                reporter.stop()
    except ForecastPipelineError as e:
        print(f"❌ Pipeline could not start: {e}")
        sys.exit(1)
    except KeyError as e:
        print(f"❌ {e.args[0]}")
        sys.exit(1)

    if not report_executions(executions):
        sys.exit(1)


def cmd_daily(args):
    """Run the daily forecast pipeline."""
    print("📅 Starting daily slot availability forecast")
    _run(args, ["daily"])


def cmd_hourly(args):
    """Run the hourly forecast pipeline."""
    print("🕐 Starting hourly slot availability forecast")
    _run(args, ["hourly"])


def cmd_all(args):
    """Run every configured variant."""
    config = load_config(args)
    names = args.variants or sorted(config.variants)
    print(f"🚀 Starting forecast pipelines: {', '.join(names)}")
    _run(args, names, concurrent=args.concurrent)


def cmd_reshape(args):
    """Reshape and upload a variant's input without running the pipeline."""
    config = load_config(args)
    runner = PipelineRunner(config)
    try:
        uris = runner.prepare_input(args.variant, args.run_id)
    except KeyError as e:
        print(f"❌ {e.args[0]}")
        sys.exit(1)
    except ForecastPipelineError as e:
        print(f"❌ Reshape failed: {e}")
        sys.exit(1)

    print(f"📦 Uploaded {len(uris)} {args.variant} partitions")
    for metric, uri in uris.items():
        print(f"   {metric}: {uri}")


def cmd_materialize(args):
    """Re-assemble the export of an earlier run."""
    config = load_config(args)
    runner = PipelineRunner(config)
    try:
        artifact = runner.materialize(args.run_id)
    except ForecastPipelineError as e:
        print(f"❌ Materialization failed: {e}")
        sys.exit(1)
    print(f"✅ Wrote {artifact.row_count} rows from {len(artifact.source_keys)} partitions to {artifact.path}")


def cmd_plot(args):
    """Plot actuals against a materialized forecast."""
    from ..visualization import plot_forecast

    try:
        output = plot_forecast(
            Path(args.actuals),
            Path(args.predictions),
            areas=args.areas,
            output_path=Path(args.output) if args.output else None,
        )
    except (ValueError, OSError) as e:
        print(f"❌ Plot failed: {e}")
        sys.exit(1)
    print(f"📈 Saved plot to {output}")


def cmd_init_config(args):
    """Write sample configuration files."""
    manager = ConfigurationManager()
    written = manager.create_sample_configs(Path(args.directory))
    for path in written:
        print(f"📝 Wrote {path}")


def cmd_config(args):
    """Show configuration and validation warnings."""
    print("⚙️  Slot Forecast Configuration")
    config = load_config(args)

    print(f"\nConfiguration: {args.config}")
    print("-" * 40)
    for key, value in config.model_dump(mode="json").items():
        print(f"{key}: {value}")

    warnings = ConfigurationLoader().validate_config(config)
    if warnings:
        print("\n⚠️  Warnings:")
        for warning in warnings:
            print(f"  - {warning}")


def create_parser():
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        description="Slot Availability Forecast Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the daily pipeline
  %(prog)s daily

  # Run daily and hourly side by side
  %(prog)s all --concurrent

  # Reassemble the export of an earlier run
  %(prog)s materialize r20240101T000000_0001abcdef

  # Plot actuals against the forecast for one area
  %(prog)s plot --actuals data/test-data.csv --predictions out/export_<run>.csv --areas SV1
        """
    )

    # Global options
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Set logging level')
    parser.add_argument('--config', default='pipeline',
                        help='Configuration file or name to search for')
    parser.add_argument('--environment', choices=[e.value for e in EnvironmentType],
                        help='Apply environment-specific overrides')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable the live progress display')
    parser.add_argument('--metric', help='Metric partition to forecast')
    parser.add_argument('--output-dir', help='Directory for export artifacts')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    parser_daily = subparsers.add_parser('daily', help='Run the daily pipeline')
    parser_daily.set_defaults(func=cmd_daily)

    parser_hourly = subparsers.add_parser('hourly', help='Run the hourly pipeline')
    parser_hourly.set_defaults(func=cmd_hourly)

    parser_all = subparsers.add_parser('all', help='Run every configured variant')
    parser_all.add_argument('--variants', nargs='+', help='Variants to run (default: all configured)')
    parser_all.add_argument('--concurrent', action='store_true',
                            help='Run the variants concurrently')
    parser_all.set_defaults(func=cmd_all)

    parser_reshape = subparsers.add_parser('reshape', help='Reshape and upload input only')
    parser_reshape.add_argument('variant', help='Variant to reshape')
    parser_reshape.add_argument('--run-id', help='Run id to scope the uploaded keys')
    parser_reshape.set_defaults(func=cmd_reshape)

    parser_mat = subparsers.add_parser('materialize', help='Re-assemble an existing export')
    parser_mat.add_argument('run_id', help='Run id of the export')
    parser_mat.set_defaults(func=cmd_materialize)

    parser_plot = subparsers.add_parser('plot', help='Plot actuals against a forecast')
    parser_plot.add_argument('--actuals', required=True, help='Actuals CSV (country,area,date,value)')
    parser_plot.add_argument('--predictions', required=True, help='Materialized export artifact')
    parser_plot.add_argument('--areas', nargs='+', help='Areas to plot')
    parser_plot.add_argument('--output', help='Output PNG path')
    parser_plot.set_defaults(func=cmd_plot)

    parser_init = subparsers.add_parser('init-config', help='Write sample configuration files')
    parser_init.add_argument('directory', help='Directory to write into')
    parser_init.set_defaults(func=cmd_init_config)

    parser_config = subparsers.add_parser('config', help='Show configuration')
    parser_config.set_defaults(func=cmd_config)

    return parser


def main_cli(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)

    try:
        args.func(args)
    except ConfigurationError as e:
        print(f"⚙️  Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        print("\n🛑 Operation interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main_cli()

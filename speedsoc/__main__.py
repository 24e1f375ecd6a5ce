"""Main entry point for speedsoc command line tools."""

import argparse
import logging
import sys
from datetime import timedelta

from speedsoc.config import estimator_config, load_config
from speedsoc.metrics_logger import MetricsLogger
from speedsoc.util.replay import PowerTraceSource, ReplayRunner
from speedsoc.util.synth_trace import SCENARIOS, TaperCurveSynthesizer


class ConditionalFormatter(logging.Formatter):
    def format(self, record):
        if record.levelno >= logging.DEBUG and record.levelno < logging.INFO:
            # Debug level: show module name
            self._style._fmt = "%(asctime)s %(name)s %(message)s"
        else:
            # Info and above: hide module name
            self._style._fmt = "%(asctime)s %(message)s"
        return super().format(record)


logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging with the conditional formatter."""
    handler = logging.StreamHandler()
    handler.setFormatter(ConditionalFormatter(datefmt="%m-%d %H:%M:%S"))

    # No-op if the root logger is already configured
    logging.basicConfig(handlers=[handler])
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="speedsoc",
        description="speedsoc - SoC estimation from EV charging power tapering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to YAML config (default: config.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Replay a CSV power trace")
    replay.add_argument("trace", help="CSV file with timestamp and power columns")
    replay.add_argument(
        "--stop-at-target",
        action="store_true",
        help="End the session as soon as the target SoC is reached",
    )

    synth = subparsers.add_parser("synth", help="Write a synthetic power trace")
    synth.add_argument("output", help="Output CSV path")
    synth.add_argument(
        "--scenario", choices=sorted(SCENARIOS), default="ac_home_11kw", help="Curve shape"
    )
    synth.add_argument("--peak-power", type=float, help="Override peak power (W)")
    synth.add_argument("--duration-minutes", type=float, default=120, help="Session length")
    synth.add_argument("--interval-seconds", type=float, default=30, help="Sample spacing")
    synth.add_argument("--noise", type=float, default=0.02, help="Relative noise amplitude")
    synth.add_argument("--seed", type=int, help="Random seed")

    return parser.parse_args(argv)


def run_replay(args: argparse.Namespace, config: dict) -> int:
    """Replay a trace and print a summary."""
    speed_config = estimator_config(config)
    if not speed_config.enabled:
        logger.warning("Estimation disabled in config, enabling for replay")
        speed_config.enabled = True

    replay_config = config.get("replay", {})
    trace = PowerTraceSource(
        args.trace,
        timestamp_column=replay_config.get("timestamp_column", "timestamp"),
        power_column=replay_config.get("power_column", "power_w"),
    )

    with MetricsLogger(config, file_date=trace.measurements[0].timestamp) as metrics:
        result = ReplayRunner(speed_config, trace, metrics_logger=metrics).run(
            stop_at_target=args.stop_at_target
        )

    status = result.final_status
    print(f"Samples: {result.samples_processed} processed, {result.samples_accepted} accepted")
    print(f"Max power: {status['maxPower']:.0f}W")
    print(f"Estimation started: {result.estimation_started_at or 'never'}")
    print(f"Target {status['targetSoc']}% reached: {result.target_reached_at or 'never'}")
    print(f"Estimated SoC: {status['estimatedSoc']:.1f}% after {status['chargingDuration']}")
    return 0


def run_synth(args: argparse.Namespace) -> int:
    """Write a synthetic trace."""
    overrides = {"seed": args.seed, "noise": args.noise}
    if args.peak_power is not None:
        overrides["peak_power"] = args.peak_power

    synthesizer = TaperCurveSynthesizer.from_scenario(args.scenario, **overrides)
    synthesizer.write_csv(
        args.output,
        duration=timedelta(minutes=args.duration_minutes),
        interval=timedelta(seconds=args.interval_seconds),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    args = parse_args(argv)
    config = load_config(args.config)
    setup_logging("DEBUG" if args.debug else config.get("logging", {}).get("level", "INFO"))

    try:
        if args.command == "replay":
            return run_replay(args, config)
        return run_synth(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Offline replay of recorded charging power traces through the estimator."""

import csv
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config import ChargingSpeedConfig
from ..estimation import EstimatorState, PowerMeasurement, SpeedEstimator
from ..metrics_logger import MetricsLogger
from .clock import MockClock

logger = logging.getLogger(__name__)


def parse_timestamp(ts_str: str) -> datetime:
    """Parse an ISO timestamp. Offset-aware values are converted to naive UTC."""
    timestamp = datetime.fromisoformat(ts_str.strip().replace("Z", "+00:00"))
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp


class PowerTraceSource:
    """Loads a charging power trace from CSV."""

    def __init__(
        self,
        csv_path: str | Path,
        timestamp_column: str = "timestamp",
        power_column: str = "power_w",
    ):
        """Initialize with path to a CSV trace.

        Args:
            csv_path: CSV file with a timestamp and a power column
            timestamp_column: Name of the ISO timestamp column
            power_column: Name of the power column (W)
        """
        self.data_path = Path(csv_path)
        self.timestamp_column = timestamp_column
        self.power_column = power_column
        self.measurements: list[PowerMeasurement] = []
        self._load_data()

    def _load_data(self) -> None:
        """Load and time-order trace rows."""
        if not self.data_path.exists():
            raise FileNotFoundError(f"Power trace not found: {self.data_path}")

        skipped = 0
        with open(self.data_path, newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                try:
                    timestamp = parse_timestamp(row[self.timestamp_column])
                    power = float(row[self.power_column])
                    if not math.isfinite(power):
                        raise ValueError(f"non-finite power {power}")
                except (KeyError, TypeError, ValueError) as e:
                    skipped += 1
                    logger.debug(f"Skipping trace row {row}: {e}")
                    continue
                self.measurements.append(PowerMeasurement(timestamp=timestamp, power=power))

        if not self.measurements:
            raise ValueError(f"No usable power samples in trace: {self.data_path}")

        self.measurements.sort(key=lambda m: m.timestamp)
        logger.info(
            f"Loaded {len(self.measurements)} power samples from {self.data_path}"
            + (f" ({skipped} skipped)" if skipped else "")
        )

    def __len__(self) -> int:
        return len(self.measurements)

    def __iter__(self):
        return iter(self.measurements)


@dataclass
class ReplayResult:
    """Outcome of replaying one trace."""

    samples_processed: int = 0
    samples_accepted: int = 0
    estimation_started_at: datetime | None = None
    target_reached_at: datetime | None = None
    final_status: dict[str, Any] = field(default_factory=dict)
    events: list[dict[str, Any]] = field(default_factory=list)


class ReplayRunner:
    """Runs a power trace through a SpeedEstimator on virtual time."""

    def __init__(
        self,
        config: ChargingSpeedConfig,
        trace: list[PowerMeasurement] | PowerTraceSource,
        metrics_logger: MetricsLogger | None = None,
    ):
        """Initialize replay runner.

        Args:
            config: Estimator configuration
            trace: Time-ordered measurements or a loaded trace source
            metrics_logger: Optional CSV logger for per-sample snapshots
        """
        self.config = config
        self.trace = list(trace)
        self.metrics_logger = metrics_logger
        start = self.trace[0].timestamp if self.trace else None
        self.clock = MockClock(start)
        self.estimator = SpeedEstimator(config, clock=self.clock)

    def run(self, stop_at_target: bool = False) -> ReplayResult:
        """Replay the trace as one charging session.

        Args:
            stop_at_target: End the session as soon as the target is reached

        Returns:
            ReplayResult summarizing the session
        """
        result = ReplayResult()
        if not self.trace:
            logger.warning("Replay: empty trace, nothing to do")
            result.final_status = self.estimator.get_status()
            return result

        self.estimator.start_charging()
        previous_state = self.estimator.get_state()

        for measurement in self.trace:
            self.clock.set(measurement.timestamp)
            before = self.estimator.get_last_sample()
            self.estimator.update_power(measurement.power)
            result.samples_processed += 1

            accepted = self.estimator.get_last_sample() != before
            if not accepted:
                continue
            result.samples_accepted += 1

            state = self.estimator.get_state()
            notes = ""
            if state is not previous_state:
                notes = f"{previous_state.value} -> {state.value}"
                self._record_event(result, measurement, state)
                previous_state = state

            if self.metrics_logger:
                self.metrics_logger.log_status(
                    self.estimator.get_status(),
                    power=measurement.power,
                    timestamp=measurement.timestamp,
                    notes=notes,
                )

            if stop_at_target and state is EstimatorState.TARGET_REACHED:
                logger.info(f"Replay: stopping at target ({measurement.timestamp})")
                break

        result.final_status = self.estimator.get_status()
        self.estimator.stop_charging()
        return result

    def _record_event(
        self, result: ReplayResult, measurement: PowerMeasurement, state: EstimatorState
    ) -> None:
        """Record a state transition."""
        event = {
            "timestamp": measurement.timestamp,
            "state": state.value,
            "power": measurement.power,
            "estimated_soc": self.estimator.get_estimated_soc(),
        }
        result.events.append(event)

        # Estimation and target can latch on the same sample
        if state.estimation_active and result.estimation_started_at is None:
            result.estimation_started_at = measurement.timestamp
        if state is EstimatorState.TARGET_REACHED:
            result.target_reached_at = measurement.timestamp

        logger.info(
            f"Replay: {state.value} at {measurement.timestamp} "
            f"({measurement.power:.0f}W, SoC {event['estimated_soc']:.1f}%)"
        )

"""Metrics logging functionality for estimator status snapshots."""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "timestamp",
    "power_w",
    "max_power_w",
    "state",
    "estimated_soc_percent",
    "target_soc_percent",
    "measurement_count",
    "charging_duration",
    "notes",
]


class MetricsLogger:
    """CSV logger for speed estimator metrics."""

    def __init__(self, config: dict[str, Any], file_date: datetime | None = None):
        """Initialize metrics logger with configuration.

        Args:
            config: Application configuration with a "metrics" section
            file_date: Date used for the file name (defaults to today)
        """
        self.config = config
        self.csv_file = None
        self.csv_writer = None
        self.csv_file_path: Path | None = None
        self._initialize_logging(file_date or datetime.now())

    def _initialize_logging(self, file_date: datetime) -> None:
        """Initialize CSV logging with date-based filename."""
        metrics_config = self.config.get("metrics", {})
        if not metrics_config.get("enabled", False):
            logger.info("Metrics logging disabled")
            return

        metrics_dir = Path(metrics_config.get("folder", "data/speedsoc/metrics"))
        self.csv_file_path = metrics_dir / f"{file_date.strftime('%Y%m%d')}.csv"

        try:
            metrics_dir.mkdir(parents=True, exist_ok=True)
            file_exists = self.csv_file_path.exists()

            mode = "a" if file_exists else "w"
            self.csv_file = open(self.csv_file_path, mode, newline="", buffering=1)
            self.csv_writer = csv.DictWriter(self.csv_file, fieldnames=CSV_HEADERS)

            if not file_exists:
                self.csv_writer.writeheader()
                self.csv_file.flush()
                logger.info(f"Metrics logging initialized (new file): {self.csv_file_path}")
            else:
                logger.info(
                    f"Metrics logging initialized (appending to existing): {self.csv_file_path}"
                )

        except OSError as e:
            logger.error(f"Failed to initialize metrics logging: {e}")
            self.csv_file = None
            self.csv_writer = None

    @property
    def enabled(self) -> bool:
        return self.csv_writer is not None

    def log_status(
        self,
        status: dict[str, Any],
        power: float | None = None,
        timestamp: datetime | None = None,
        notes: str = "",
    ) -> None:
        """Log one estimator status snapshot to the CSV file.

        Args:
            status: Result of SpeedEstimator.get_status()
            power: Power reading that produced this snapshot
            timestamp: Sample time (defaults to now)
            notes: Free-form annotation, e.g. a state transition
        """
        if not self.csv_writer or not self.csv_file:
            return

        row = {
            "timestamp": (timestamp or datetime.now()).isoformat(),
            "power_w": power,
            "max_power_w": status.get("maxPower"),
            "state": status.get("state"),
            "estimated_soc_percent": round(status.get("estimatedSoc", 0.0), 2),
            "target_soc_percent": status.get("targetSoc"),
            "measurement_count": status.get("measurementCount"),
            "charging_duration": status.get("chargingDuration"),
            "notes": notes,
        }

        try:
            self.csv_writer.writerow(row)
            self.csv_file.flush()
        except OSError as e:
            logger.error(f"Failed to log metrics, disabling metrics logging: {e}")
            self.close()
            return

        logger.debug(f"Logged metrics: power={power}W, SoC={row['estimated_soc_percent']}%")

    def close(self) -> None:
        """Close CSV file and cleanup resources."""
        if self.csv_file:
            try:
                self.csv_file.close()
                logger.info(f"Metrics logging closed: {self.csv_file_path}")
            except OSError as e:
                logger.error(f"Error closing metrics file: {e}")
            finally:
                self.csv_file = None
                self.csv_writer = None

    def __enter__(self) -> "MetricsLogger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

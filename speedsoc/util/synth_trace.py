"""Synthetic charging power traces for replay and testing."""

import csv
import logging
import random
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
from scipy import interpolate

from ..estimation.models import PowerMeasurement

logger = logging.getLogger(__name__)

# Charge curve shapes. Times are fractions of the session duration, powers are
# fractions of peak power.
SCENARIOS = {
    "ac_home_11kw": {
        "peak_power": 11000,
        "ramp_end": 0.03,
        "knee_at": 0.65,
        "floor": 0.35,
    },
    "ac_home_7kw_late_knee": {
        "peak_power": 7400,
        "ramp_end": 0.02,
        "knee_at": 0.8,
        "floor": 0.5,
    },
    "dc_fast_50kw": {
        "peak_power": 50000,
        "ramp_end": 0.05,
        "knee_at": 0.35,
        "floor": 0.2,
    },
    "no_taper_3kw": {
        "peak_power": 3000,
        "ramp_end": 0.02,
        "knee_at": 1.0,
        "floor": 1.0,
    },
}


class TaperCurveSynthesizer:
    """Generates charging power traces with a ramp, a plateau and a taper knee."""

    def __init__(
        self,
        peak_power: float = 11000,
        ramp_end: float = 0.03,
        knee_at: float = 0.65,
        floor: float = 0.35,
        noise: float = 0.0,
        seed: int | None = None,
    ):
        """Initialize curve shape.

        Args:
            peak_power: Plateau charging power in W
            ramp_end: Fraction of the session spent ramping up to peak
            knee_at: Fraction of the session at which tapering begins
            floor: Power at session end as a fraction of peak
            noise: Relative noise amplitude (0.02 = ±2%)
            seed: Random seed for reproducible noise
        """
        if not 0 < ramp_end <= knee_at <= 1:
            raise ValueError(
                f"Curve shape requires 0 < ramp_end <= knee_at <= 1, got {ramp_end}, {knee_at}"
            )
        self.peak_power = peak_power
        self.ramp_end = ramp_end
        self.knee_at = knee_at
        self.floor = floor
        self.noise = noise
        self._random = random.Random(seed)

    @classmethod
    def from_scenario(cls, scenario: str, **kwargs) -> "TaperCurveSynthesizer":
        """Create a synthesizer for one of the named SCENARIOS."""
        params = SCENARIOS.get(scenario)
        if params is None:
            raise ValueError(f"Unknown scenario: {scenario}. Available: {list(SCENARIOS.keys())}")
        return cls(**{**params, **kwargs})

    def _curve(self, fractions: np.ndarray) -> np.ndarray:
        """Evaluate normalized power (0-1) at session time fractions."""
        anchors_t = [0.0, self.ramp_end]
        anchors_p = [0.0, 1.0]
        if self.knee_at > self.ramp_end:
            anchors_t.append(self.knee_at)
            anchors_p.append(1.0)
        if self.knee_at < 1.0:
            anchors_t.append(1.0)
            anchors_p.append(self.floor)

        # Monotone piecewise cubic so the plateau never overshoots peak
        curve = interpolate.PchipInterpolator(anchors_t, anchors_p, extrapolate=True)
        return np.clip(curve(fractions), 0.0, 1.0)

    def generate(
        self,
        start_time: datetime | None = None,
        duration: timedelta = timedelta(hours=2),
        interval: timedelta = timedelta(seconds=30),
    ) -> list[PowerMeasurement]:
        """Generate a power trace.

        Args:
            start_time: Timestamp of the first sample (defaults to now)
            duration: Session length
            interval: Spacing between samples

        Returns:
            Time-ordered list of measurements
        """
        if start_time is None:
            start_time = datetime.now()
        if interval <= timedelta(0):
            raise ValueError(f"Sample interval must be positive, got {interval}")

        num_points = int(duration / interval) + 1
        offsets = np.arange(num_points) * interval.total_seconds()
        fractions = offsets / max(duration.total_seconds(), 1.0)
        powers = self._curve(fractions) * self.peak_power

        trace = []
        for offset, power in zip(offsets.tolist(), powers.tolist(), strict=True):
            if self.noise:
                power *= 1 + self._random.uniform(-self.noise, self.noise)
            trace.append(
                PowerMeasurement(
                    timestamp=start_time + timedelta(seconds=offset), power=max(0.0, power)
                )
            )

        logger.debug(f"Synthesized {len(trace)} samples, peak {self.peak_power:.0f}W")
        return trace

    def write_csv(self, output_path: str | Path, **kwargs) -> list[PowerMeasurement]:
        """Generate a trace and write it as timestamp,power_w CSV."""
        trace = self.generate(**kwargs)
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["timestamp", "power_w"])
            for m in trace:
                writer.writerow([m.timestamp.isoformat(), f"{m.power:.1f}"])

        logger.info(f"Wrote {len(trace)} synthetic samples to {path}")
        return trace

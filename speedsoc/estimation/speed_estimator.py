"""SoC estimation from charging speed reduction.

Vehicles without an SoC API still show the characteristic taper of charge power
as the battery approaches full. This estimator tracks the peak charging power of
a session and, once power has dropped by a configured fraction and stayed down
for a stability window, projects an SoC from the size of the drop:

    reduction     = (max_power - power) / max_power
    estimated_soc = clamp(target_soc - 10 + reduction * 30, 0, 100)

The linear approximation assumes the taper spans roughly 30 SoC points and that
estimation engages about 10 points below the target. It is vehicle agnostic.
"""

import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Any

from ..config import ChargingSpeedConfig, default_charging_speed_config, format_duration
from ..util.clock import Clock, SystemClock
from .models import EstimatorState, PowerMeasurement

logger = logging.getLogger(__name__)


class SpeedEstimator:
    """Estimates SoC based on charging speed reduction patterns.

    One instance tracks one vehicle's session at a time and is reused across
    sessions. Sampling cadence is driven by the caller through update_power().
    """

    SOC_TAPER_BAND = 30.0  # SoC points over which power tapers
    SOC_BASE_OFFSET = 10.0  # Estimation starts this many points below target
    MIN_STABLE_MEASUREMENTS = 3

    def __init__(
        self,
        config: ChargingSpeedConfig | None = None,
        clock: Clock | None = None,
        log: logging.Logger | None = None,
    ):
        """Initialize the estimator.

        Args:
            config: Estimator configuration; replaced by defaults if the
                sample interval is unset
            clock: Time source (default: wall clock)
            log: Logger to report session events to
        """
        self.log = log or logger
        if config is None or not config.sample_interval:
            if config is not None:
                self.log.warning("speed estimator: sample interval unset, using default config")
            config = default_charging_speed_config()

        self.config = config
        self.clock = clock or SystemClock()
        self._lock = threading.Lock()

        self.state = EstimatorState.IDLE
        self.power_history: list[PowerMeasurement] = []
        self.max_power = 0.0
        self.max_power_time: datetime | None = None
        self.charging_started: datetime | None = None
        self.estimated_soc = 0.0
        self.last_sample: datetime | None = None

    def start_charging(self) -> None:
        """Reset session state for a new charging session."""
        with self._lock:
            self.charging_started = self.clock.now()
            self.power_history = []
            self.max_power = 0.0
            self.max_power_time = None
            self.estimated_soc = 0.0
            self.last_sample = None
            self.state = EstimatorState.CHARGING

            self.log.debug("speed estimator: charging session started")

    def stop_charging(self) -> None:
        """End the session. History and max power are kept until the next start."""
        with self._lock:
            self.state = EstimatorState.IDLE
            self.log.debug("speed estimator: charging session stopped")

    def update_power(self, power: float) -> None:
        """Add a power measurement (W) and update the SoC estimation."""
        if not self.config.enabled:
            return

        if not math.isfinite(power):
            self.log.debug(f"speed estimator: ignoring non-finite power reading {power}")
            return

        with self._lock:
            if not self.state.in_session:
                self.log.debug(f"speed estimator: ignoring {power:.0f}W outside of a session")
                return

            now = self.clock.now()

            # Rate limiting
            if self.last_sample is not None and now - self.last_sample < self.config.sample_interval:
                return
            self.last_sample = now

            self.power_history.append(PowerMeasurement(timestamp=now, power=power))
            self._clean_old_measurements(now)

            # Peak power may only rise within the window after session start
            if power > self.max_power and (
                self.max_power_time is None
                or now - self.charging_started <= self.config.max_power_window
            ):
                self.max_power = power
                self.max_power_time = now
                self.log.debug(f"speed estimator: new max power {power:.0f}W")

            if self.state is EstimatorState.CHARGING and self._can_start_estimation(now, power):
                self.state = EstimatorState.ESTIMATING
                self.log.info(
                    f"speed estimator: starting SoC estimation "
                    f"(max power: {self.max_power:.0f}W, current: {power:.0f}W)"
                )

            if self.state.estimation_active:
                self._update_soc_estimation(power)

    def _can_start_estimation(self, now: datetime, current_power: float) -> bool:
        """Check whether all conditions to start SoC estimation hold."""
        if now - self.charging_started < self.config.min_charging_time:
            return False

        if self.max_power <= 0 or self.max_power < self.config.min_power_for_estimation:
            return False

        power_reduction = (self.max_power - current_power) / self.max_power
        if power_reduction < self.config.reduction_threshold:
            return False

        return self._has_stable_power_reduction(now)

    def _has_stable_power_reduction(self, now: datetime) -> bool:
        """Check that every sample in the stability window is below the threshold."""
        stability_start = now - self.config.stability_window
        recent = [m for m in self.power_history if m.timestamp > stability_start]

        if len(recent) < self.MIN_STABLE_MEASUREMENTS:
            return False

        threshold = self.max_power * (1 - self.config.reduction_threshold)
        return all(m.power <= threshold for m in recent)

    def _update_soc_estimation(self, current_power: float) -> None:
        """Project SoC from the reduction against max power."""
        if self.max_power <= 0:
            return

        power_reduction = (self.max_power - current_power) / self.max_power
        soc_increase = power_reduction * self.SOC_TAPER_BAND
        base_soc = self.config.target_soc - self.SOC_BASE_OFFSET
        self.estimated_soc = max(0.0, min(100.0, base_soc + soc_increase))

        if (
            self.estimated_soc >= self.config.target_soc
            and self.state is not EstimatorState.TARGET_REACHED
        ):
            self.state = EstimatorState.TARGET_REACHED
            self.log.info(
                f"speed estimator: target SoC {self.config.target_soc}% reached "
                f"(estimated: {self.estimated_soc:.1f}%)"
            )

        self.log.debug(
            f"speed estimator: power {current_power:.0f}W "
            f"({current_power / self.max_power * 100:.1f}% of max), "
            f"estimated SoC: {self.estimated_soc:.1f}%"
        )

    def _clean_old_measurements(self, now: datetime) -> None:
        """Drop measurements older than the retention period."""
        cutoff = now - self.config.history_retention
        self.power_history = [m for m in self.power_history if m.timestamp > cutoff]

    def is_target_reached(self) -> bool:
        with self._lock:
            return self.state is EstimatorState.TARGET_REACHED

    def get_estimated_soc(self) -> float:
        with self._lock:
            return self.estimated_soc

    def is_estimation_active(self) -> bool:
        with self._lock:
            return self.state.estimation_active

    def get_state(self) -> EstimatorState:
        with self._lock:
            return self.state

    def get_last_sample(self) -> datetime | None:
        """Time of the last accepted sample, if any."""
        with self._lock:
            return self.last_sample

    def get_power_history(self) -> tuple[PowerMeasurement, ...]:
        """Snapshot of the retained power history."""
        with self._lock:
            return tuple(self.power_history)

    def get_status(self) -> dict[str, Any]:
        """Get current status information for debugging/UI."""
        with self._lock:
            if self.charging_started is None:
                duration = timedelta(0)
            else:
                duration = self.clock.now() - self.charging_started

            return {
                "enabled": self.config.enabled,
                "state": self.state.value,
                "estimationActive": self.state.estimation_active,
                "estimatedSoc": self.estimated_soc,
                "targetSoc": self.config.target_soc,
                "targetReached": self.state is EstimatorState.TARGET_REACHED,
                "maxPower": self.max_power,
                "measurementCount": len(self.power_history),
                "chargingDuration": format_duration(duration),
            }

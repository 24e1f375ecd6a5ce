"""Charging speed based SoC estimation package."""

from .models import EstimatorState, PowerMeasurement
from .speed_estimator import SpeedEstimator

__all__ = [
    "EstimatorState",
    "PowerMeasurement",
    "SpeedEstimator",
]

"""speedsoc - SoC estimation from EV charging power tapering."""

from .config import ChargingSpeedConfig, default_charging_speed_config
from .estimation import EstimatorState, PowerMeasurement, SpeedEstimator

__version__ = "0.1.0"
__all__ = [
    "ChargingSpeedConfig",
    "EstimatorState",
    "PowerMeasurement",
    "SpeedEstimator",
    "default_charging_speed_config",
]

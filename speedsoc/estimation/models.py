"""Data types shared by the charging speed estimator."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class PowerMeasurement:
    """A single charging power reading."""

    timestamp: datetime
    power: float  # Watts


class EstimatorState(Enum):
    """Session state of the estimator.

    States only move forward within a session:
    IDLE -> CHARGING -> ESTIMATING -> TARGET_REACHED.
    """

    IDLE = "idle"
    CHARGING = "charging"
    ESTIMATING = "estimating"
    TARGET_REACHED = "target_reached"

    @property
    def in_session(self) -> bool:
        return self is not EstimatorState.IDLE

    @property
    def estimation_active(self) -> bool:
        return self in (EstimatorState.ESTIMATING, EstimatorState.TARGET_REACHED)

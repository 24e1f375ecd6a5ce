"""Test fixtures and configuration for speedsoc tests."""

from datetime import datetime, timedelta

import pytest

from speedsoc.config import ChargingSpeedConfig, default_charging_speed_config
from speedsoc.estimation import SpeedEstimator
from speedsoc.util.clock import MockClock


@pytest.fixture
def mock_clock() -> MockClock:
    """Virtual clock starting at a fixed timestamp."""
    return MockClock(datetime(2025, 1, 1, 12, 0, 0))


@pytest.fixture
def speed_config() -> ChargingSpeedConfig:
    """Enabled config with short windows for fast scenarios."""
    config = default_charging_speed_config()
    config.enabled = True
    config.sample_interval = timedelta(seconds=1)
    config.min_charging_time = timedelta(minutes=1)
    config.reduction_threshold = 0.15
    config.min_power_for_estimation = 1000
    config.stability_window = timedelta(minutes=1)
    config.target_soc = 80
    return config


@pytest.fixture
def estimator(speed_config, mock_clock) -> SpeedEstimator:
    """Enabled estimator on virtual time."""
    return SpeedEstimator(speed_config, clock=mock_clock)


@pytest.fixture
def active_estimator(estimator, mock_clock) -> SpeedEstimator:
    """Estimator that has just started estimating (5000W peak, 4000W stable)."""
    estimator.start_charging()
    estimator.update_power(5000)
    mock_clock.advance(timedelta(minutes=2))
    for _ in range(5):
        estimator.update_power(4000)
        mock_clock.advance(timedelta(seconds=20))
    assert estimator.is_estimation_active()
    return estimator


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file for testing."""
    config_content = """
vehicle:
  title: "Test car"
  chargingSpeedLimit:
    enabled: true
    targetSoc: 85
    sampleInterval: "10s"
    stabilityWindow: "3m"
metrics:
  enabled: false
"""
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content)
    return config_file

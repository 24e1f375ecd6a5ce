"""Configuration management for speedsoc."""

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

# Keys of the per-vehicle ``chargingSpeedLimit`` override block
VEHICLE_BLOCK_KEY = "chargingSpeedLimit"
DURATION_FIELDS = {
    "maxPowerWindow": "max_power_window",
    "minChargingTime": "min_charging_time",
    "sampleInterval": "sample_interval",
    "historyRetention": "history_retention",
    "stabilityWindow": "stability_window",
}

_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|us|µs|h|m|s)")


@dataclass
class ChargingSpeedConfig:
    """Configuration for charging speed based SoC estimation."""

    enabled: bool = False
    target_soc: int = 80  # percent
    max_power_window: timedelta = field(default_factory=lambda: timedelta(minutes=10))
    reduction_threshold: float = 0.15  # 15% drop from max power
    min_charging_time: timedelta = field(default_factory=lambda: timedelta(minutes=15))
    sample_interval: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    history_retention: timedelta = field(default_factory=lambda: timedelta(hours=2))
    stability_window: timedelta = field(default_factory=lambda: timedelta(minutes=5))
    min_power_for_estimation: float = 1000.0  # W


def default_charging_speed_config() -> ChargingSpeedConfig:
    """Return the default estimator configuration (estimation disabled)."""
    return ChargingSpeedConfig()


def parse_duration(text: str | None) -> timedelta | None:
    """Parse a compact duration string such as "10m", "30s" or "1h30m".

    Returns None for an empty value so callers can keep their default.
    """
    if text is None:
        return None
    text = str(text).strip()
    if not text:
        return None
    if text == "0":
        return timedelta(0)

    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ValueError(f"Invalid duration: {text!r}")
    return total


def format_duration(delta: timedelta) -> str:
    """Render a timedelta in the same compact form, e.g. "1h5m30s" or "2m0s"."""
    if delta < timedelta(0):
        return "-" + format_duration(-delta)
    if delta == timedelta(0):
        return "0s"

    total_seconds = delta.total_seconds()
    if total_seconds < 1:
        return f"{total_seconds * 1000:g}ms"

    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    seconds_str = f"{round(seconds, 6):g}s"
    if hours:
        return f"{int(hours)}h{int(minutes)}m{seconds_str}"
    if minutes:
        return f"{int(minutes)}m{seconds_str}"
    return seconds_str


def charging_speed_config_from_vehicle(block: dict[str, Any] | None) -> ChargingSpeedConfig:
    """Build estimator configuration from a vehicle's chargingSpeedLimit block.

    Duration fields are given as strings ("10m", "30s"). Missing or empty fields
    keep their default values.

    Raises:
        ValueError: If a duration cannot be parsed or a value is out of range
    """
    config = default_charging_speed_config()
    if not block:
        return config

    if block.get("enabled") is not None:
        config.enabled = bool(block["enabled"])

    if block.get("targetSoc") is not None:
        target_soc = int(block["targetSoc"])
        if not 0 <= target_soc <= 100:
            raise ValueError(f"targetSoc must be within 0-100, got {target_soc}")
        config.target_soc = target_soc

    if block.get("reductionThreshold") is not None:
        threshold = float(block["reductionThreshold"])
        if not 0 < threshold <= 1:
            raise ValueError(f"reductionThreshold must be within (0, 1], got {threshold}")
        config.reduction_threshold = threshold

    if block.get("minPowerForEstimation") is not None:
        min_power = float(block["minPowerForEstimation"])
        if min_power < 0:
            raise ValueError(f"minPowerForEstimation must not be negative, got {min_power}")
        config.min_power_for_estimation = min_power

    for key, attr in DURATION_FIELDS.items():
        try:
            value = parse_duration(block.get(key))
        except ValueError as e:
            raise ValueError(f"{key}: {e}") from e
        if value is not None:
            setattr(config, attr, value)

    return config


def charging_speed_config_to_vehicle(config: ChargingSpeedConfig) -> dict[str, Any]:
    """Express estimator configuration as a chargingSpeedLimit block."""
    block: dict[str, Any] = {
        "enabled": config.enabled,
        "targetSoc": config.target_soc,
        "reductionThreshold": config.reduction_threshold,
        "minPowerForEstimation": config.min_power_for_estimation,
    }
    for key, attr in DURATION_FIELDS.items():
        block[key] = format_duration(getattr(config, attr))
    return block


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from file or environment."""
    default_config = {
        "vehicle": {
            "title": "",
            VEHICLE_BLOCK_KEY: charging_speed_config_to_vehicle(default_charging_speed_config()),
        },
        "replay": {
            "timestamp_column": "timestamp",
            "power_column": "power_w",
        },
        "metrics": {
            "enabled": False,
            "folder": "data/speedsoc/metrics",
        },
        "logging": {
            "level": "INFO",
        },
    }

    if config_path is None:
        config_path = os.environ.get("SPEEDSOC_CONFIG")
        if config_path is None:
            for candidate in ["config.yaml", "config.local.yaml"]:
                if Path(candidate).exists():
                    config_path = candidate
                    break
            else:
                config_path = "config.yaml"  # Default even if doesn't exist

    config_file = Path(config_path)
    user_config = {}

    if config_file.exists():
        with open(config_file) as f:
            user_config = yaml.safe_load(f) or {}

    return _deep_merge(default_config, user_config)


def save_config(config: dict[str, Any], config_path: str = "config.yaml") -> None:
    """Save configuration to YAML file."""
    with open(config_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, indent=2)


def estimator_config(config: dict[str, Any]) -> ChargingSpeedConfig:
    """Extract the estimator configuration from a loaded application config."""
    return charging_speed_config_from_vehicle(config.get("vehicle", {}).get(VEHICLE_BLOCK_KEY))


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result

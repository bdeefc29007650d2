"""
Engine configuration and logging setup.

Defaults live in config/kpi_config.yaml. If the file is missing or invalid,
the hardcoded defaults below are used as a fallback. Environment variables
(optionally from a .env file) override individual values.

The library never configures logging on import. Hosts and scripts call
configure_logging() once at startup; it reads LOG_LEVEL (default INFO).
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Default config used when kpi_config.yaml is missing
_DEFAULT_CONFIG: Dict[str, Any] = {
    "thresholds": {
        "microstop_seconds": 180,
        "short_stop_seconds": 300,
        "long_stop_seconds": 1800,
    },
    "repair": {
        "clock_skew_tolerance_seconds": 60,
    },
    "oee": {
        "default_performance": 1.0,
        "default_quality": 1.0,
    },
    "reporting": {
        "decimal_places": 2,
        "include_intervals": True,
        "coalesce_intervals": True,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load engine configuration from YAML file.

    Falls back to hardcoded defaults if the file is missing or invalid.

    Args:
        config_path: Optional explicit path to config file. If None, looks
            for config/kpi_config.yaml inside the package.

    Returns:
        Configuration dictionary.
    """
    if config_path is None:
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "config", "kpi_config.yaml")

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
        if not isinstance(config, dict):
            raise ValueError("top-level YAML value must be a mapping")
        logger.info(f"Loaded KPI config from {config_path}")
        return config
    except FileNotFoundError:
        logger.warning(f"KPI config not found at {config_path}, using defaults")
        return _DEFAULT_CONFIG
    except (yaml.YAMLError, ValueError) as e:
        logger.warning(f"Failed to load KPI config ({e}), using defaults")
        return _DEFAULT_CONFIG


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    merged = dict(_DEFAULT_CONFIG[name])
    merged.update(config.get(name) or {})
    return merged


@dataclass
class EngineConfig:
    """Parameters of one KPIEngine."""

    microstop_threshold_seconds: float = 180
    short_stop_threshold_seconds: float = 300
    long_stop_threshold_seconds: float = 1800
    clock_skew_tolerance_seconds: float = 60
    default_performance: float = 1.0
    default_quality: float = 1.0
    decimal_places: int = 2
    include_intervals: bool = True
    coalesce_intervals: bool = True

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "EngineConfig":
        """Create config from a parsed kpi_config.yaml mapping."""
        thresholds = _section(config, "thresholds")
        repair = _section(config, "repair")
        oee = _section(config, "oee")
        reporting = _section(config, "reporting")
        return cls(
            microstop_threshold_seconds=float(thresholds["microstop_seconds"]),
            short_stop_threshold_seconds=float(thresholds["short_stop_seconds"]),
            long_stop_threshold_seconds=float(thresholds["long_stop_seconds"]),
            clock_skew_tolerance_seconds=float(repair["clock_skew_tolerance_seconds"]),
            default_performance=float(oee["default_performance"]),
            default_quality=float(oee["default_quality"]),
            decimal_places=int(reporting["decimal_places"]),
            include_intervals=bool(reporting["include_intervals"]),
            coalesce_intervals=bool(reporting["coalesce_intervals"]),
        )

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> "EngineConfig":
        return cls.from_dict(load_config(config_path))

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from the YAML file plus environment overrides."""
        load_dotenv()
        config = cls.from_file(os.getenv("KPI_CONFIG_PATH"))

        if os.getenv("KPI_MICROSTOP_THRESHOLD_SECONDS"):
            config.microstop_threshold_seconds = float(os.environ["KPI_MICROSTOP_THRESHOLD_SECONDS"])
        if os.getenv("KPI_SHORT_STOP_THRESHOLD_SECONDS"):
            config.short_stop_threshold_seconds = float(os.environ["KPI_SHORT_STOP_THRESHOLD_SECONDS"])
        if os.getenv("KPI_LONG_STOP_THRESHOLD_SECONDS"):
            config.long_stop_threshold_seconds = float(os.environ["KPI_LONG_STOP_THRESHOLD_SECONDS"])
        if os.getenv("KPI_CLOCK_SKEW_TOLERANCE_SECONDS"):
            config.clock_skew_tolerance_seconds = float(os.environ["KPI_CLOCK_SKEW_TOLERANCE_SECONDS"])
        if os.getenv("KPI_DECIMAL_PLACES"):
            config.decimal_places = int(os.environ["KPI_DECIMAL_PLACES"])

        return config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for hosts and scripts (LOG_LEVEL, default INFO)."""
    logging.basicConfig(level=(level or os.getenv("LOG_LEVEL", "INFO")).upper())

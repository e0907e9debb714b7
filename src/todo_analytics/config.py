"""Configuration for the analytics engine.

The heuristic constants of the scoring models live here so they can be tuned
from a YAML file without touching the calculators. The engine itself never
reads files; callers pass an ``AnalyticsConfig`` instance explicitly.
"""

import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsConfig:
    """Tunable parameters of the analytics engine."""

    # Result cache
    cache_ttl_seconds: float = 300.0

    # Report defaults
    default_period_count: int = 7
    trend_days: int = 30
    trend_stable_threshold: float = 0.1

    # Delay thresholds (days)
    delayed_threshold_days: int = 1
    long_term_threshold_days: int = 7
    very_long_term_threshold_days: int = 30

    # Procrastination score weights (maximum points per component)
    delayed_ratio_weight: float = 30.0
    long_term_weight: float = 25.0
    very_long_term_weight: float = 25.0
    completion_time_weight: float = 20.0
    completion_time_grace_days: float = 7.0
    completion_time_multiplier: float = 2.0

    # Procrastination level boundaries (score < threshold)
    moderate_threshold: float = 20.0
    high_threshold: float = 40.0
    very_high_threshold: float = 70.0

    # Productivity score for work periods
    productivity_rate_weight: float = 0.7
    productivity_volume_weight: float = 0.3
    productivity_volume_cap: int = 10
    low_productivity_threshold: int = 30

    def __post_init__(self):
        """Validate numeric settings."""
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must not be negative")
        if self.default_period_count < 1:
            raise ValueError("default_period_count must be at least 1")
        if self.productivity_volume_cap < 1:
            raise ValueError("productivity_volume_cap must be at least 1")

        weights = (
            self.delayed_ratio_weight,
            self.long_term_weight,
            self.very_long_term_weight,
            self.completion_time_weight,
        )
        if any(w < 0 for w in weights):
            raise ValueError("procrastination weights must not be negative")
        if sum(weights) > 100:
            raise ValueError("procrastination weights must sum to at most 100")

        if not (self.moderate_threshold <= self.high_threshold <= self.very_high_threshold):
            raise ValueError("procrastination level thresholds must be ascending")

        if not (self.delayed_threshold_days <= self.long_term_threshold_days
                <= self.very_long_term_threshold_days):
            raise ValueError("delay thresholds must be ascending")

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.dump(asdict(self), default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "AnalyticsConfig":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Analytics configuration must be a YAML mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown analytics config keys: {', '.join(unknown)}")

        return cls(**{key: value for key, value in data.items() if key in known})


DEFAULT_CONFIG = AnalyticsConfig()


def load_config(config_path: Optional[Union[str, Path]] = None) -> AnalyticsConfig:
    """Load configuration from a YAML file, or return defaults."""
    if config_path is None:
        return AnalyticsConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        logger.info(f"No analytics config at {config_path}, using defaults")
        return AnalyticsConfig()

    with open(config_path, "r") as f:
        config = AnalyticsConfig.from_yaml(f.read())
    logger.debug(f"Loaded analytics configuration from {config_path}")
    return config


def save_config(config: AnalyticsConfig, config_path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(config.to_yaml())
    logger.info(f"Analytics configuration saved to {config_path}")

"""
Fraud Detection Engine - Configuration.

============================================================
THRESHOLDS
============================================================
- price_deviation_threshold_bp: 3000 (30% from the mean)
- time_deviation_threshold_minutes: 1440 (one day of grace
  on top of the expected stage duration)
- min_history_points: 5 samples before any analysis
- confidence_threshold: 5000 bp minimum to record
- max_violations_before_blacklist: 3

============================================================
EXPECTED STAGE DURATIONS
============================================================
Indexed by the stage being left (stage - 1), in minutes:

    0 Planted      -> Growing       90 days
    1 Growing      -> Harvested     60 days
    2 Harvested    -> Processed      2 days
    3 Processed    -> Packaged       3 days
    4 Packaged     -> InTransit      1 day
    5 InTransit    -> Distributed    3 days
    6 Distributed  -> Retail         2 days
    7 Retail       -> Sold           7 days

============================================================
RISK SCORING
============================================================
Fixed weights (basis points of risk):
- price anomaly: 4000
- timing violation: 3000
- repeat offender (>= 2 violations): their risk score
- auto-blacklist at an aggregate of 8000

Fraud pattern: first violation seeds 1000, every repeat
adds 1500.

============================================================
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Tuple


STAGE_TRANSITIONS = 8

DEFAULT_EXPECTED_DURATIONS: Tuple[int, ...] = (
    129600,
    86400,
    2880,
    4320,
    1440,
    4320,
    2880,
    10080,
)

ANOMALY_WEIGHT = 4000
TIMING_WEIGHT = 3000
REPEAT_OFFENDER_MIN_VIOLATIONS = 2
AUTO_BLACKLIST_SCORE = 8000

INITIAL_RISK_SCORE = 1000
RISK_SCORE_INCREMENT = 1500

CONFIDENCE_HIGH = 9000
CONFIDENCE_MEDIUM = 7500
CONFIDENCE_LOW = 5000
HIGH_CONFIDENCE_SAMPLES = 20
MEDIUM_CONFIDENCE_SAMPLES = 10


@dataclass(frozen=True)
class FraudDetectionConfig:
    """Admin-tunable detection thresholds."""

    price_deviation_threshold_bp: int = 3000
    time_deviation_threshold_minutes: int = 1440
    min_history_points: int = 5
    confidence_threshold: int = 5000
    max_violations_before_blacklist: int = 3
    is_active: bool = True
    expected_durations: Tuple[int, ...] = field(default=DEFAULT_EXPECTED_DURATIONS)

    @classmethod
    def tunable_keys(cls) -> Tuple[str, ...]:
        """Fields changeable through ``update_detection_config``."""
        return tuple(f.name for f in fields(cls) if f.name != "expected_durations")

    def expected_minutes(self, stage: int) -> int:
        """Expected duration of the stage preceding ``stage``."""
        return self.expected_durations[stage - 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price_deviation_threshold_bp": self.price_deviation_threshold_bp,
            "time_deviation_threshold_minutes": self.time_deviation_threshold_minutes,
            "min_history_points": self.min_history_points,
            "confidence_threshold": self.confidence_threshold,
            "max_violations_before_blacklist": self.max_violations_before_blacklist,
            "is_active": self.is_active,
            "expected_durations": list(self.expected_durations),
        }


def get_default_config() -> FraudDetectionConfig:
    return FraudDetectionConfig()


@dataclass(frozen=True)
class AlertingConfig:
    """
    Configuration for fraud alerts.

    Alerts are a side channel. They never change engine state.
    """

    alert_on_blacklist: bool = True
    alert_on_anomaly: bool = False
    alert_risk_score: int = 7000
    """Comprehensive analyses at or above this score alert."""

    min_seconds_between_alerts: float = 300.0
    telegram_include_details: bool = True
    telegram_timeout_seconds: float = 10.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_on_blacklist": self.alert_on_blacklist,
            "alert_on_anomaly": self.alert_on_anomaly,
            "alert_risk_score": self.alert_risk_score,
            "min_seconds_between_alerts": self.min_seconds_between_alerts,
            "telegram_include_details": self.telegram_include_details,
            "telegram_timeout_seconds": self.telegram_timeout_seconds,
        }

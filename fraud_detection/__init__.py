"""
Fraud Detection Engine - Package.

============================================================
PURPOSE
============================================================
Rolling price statistics, z-score style anomaly
classification, stage timing validation, actor risk
scoring and auto-blacklisting.

============================================================
USAGE
============================================================
    from fraud_detection import FraudDetectionEngine

    fraud = FraudDetectionEngine(registry, ledger)
    result = fraud.analyze_price_anomaly(product_id)
    analysis = fraud.comprehensive_analysis(product_id)

============================================================
"""

from .types import (
    MAX_HISTORY_POINTS,
    NO_RECORD,
    ActorFraudPattern,
    AnomalyResult,
    AnomalyType,
    ComprehensiveAnalysisResult,
    FraudState,
    PriceAnomalyRecord,
    PriceSample,
    TimeViolationRecord,
)
from .config import (
    DEFAULT_EXPECTED_DURATIONS,
    AlertingConfig,
    FraudDetectionConfig,
    get_default_config,
)
from .statistics import PriceHistoryWindow, integer_mean, integer_sqrt, population_stddev
from .engine import FraudDetectionEngine, classify_anomaly, confidence_for


__all__ = [
    "MAX_HISTORY_POINTS",
    "NO_RECORD",
    "ActorFraudPattern",
    "AnomalyResult",
    "AnomalyType",
    "ComprehensiveAnalysisResult",
    "FraudState",
    "PriceAnomalyRecord",
    "PriceSample",
    "TimeViolationRecord",
    "DEFAULT_EXPECTED_DURATIONS",
    "AlertingConfig",
    "FraudDetectionConfig",
    "get_default_config",
    "PriceHistoryWindow",
    "integer_mean",
    "integer_sqrt",
    "population_stddev",
    "FraudDetectionEngine",
    "classify_anomaly",
    "confidence_for",
]

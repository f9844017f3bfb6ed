"""
Fraud Detection Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for price anomaly detection, stage timing
validation and actor risk tracking.

============================================================
RECORD KINDS
============================================================
1. PriceAnomalyRecord: flagged price, monotonic id
2. TimeViolationRecord: overdue stage, monotonic id
3. ActorFraudPattern: one per actor, never deleted

Ids are allocated from separate counters per record kind
and start at 1. Id 0 means "nothing recorded".

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from product_ledger.types import ProductStage


NO_RECORD = 0

MAX_HISTORY_POINTS = 100
"""Upper bound of every price history window."""


# ============================================================
# ENUMS
# ============================================================


class AnomalyType(str, Enum):
    """Classification of a flagged price."""

    HIGH = "high"
    """Price above mean + 2 standard deviations."""

    LOW = "low"
    """Price below mean - 2 standard deviations."""

    GENERAL = "general"
    """Deviation over threshold but within 2 standard deviations."""


# ============================================================
# HISTORY
# ============================================================


@dataclass(frozen=True)
class PriceSample:
    """One entry of a product's price history window."""

    price: int
    timestamp: datetime
    stage: ProductStage


# ============================================================
# RECORDS
# ============================================================


@dataclass
class PriceAnomalyRecord:
    """A recorded price anomaly."""

    anomaly_id: int
    product_id: int
    actor: str
    price: int
    detected_at: datetime
    deviation_bp: int
    confidence_score: int
    anomaly_type: AnomalyType
    resolved: bool = False
    resolution_reason: str = ""
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anomaly_id": self.anomaly_id,
            "product_id": self.product_id,
            "actor": self.actor,
            "price": self.price,
            "detected_at": self.detected_at.isoformat(),
            "deviation_bp": self.deviation_bp,
            "confidence_score": self.confidence_score,
            "anomaly_type": self.anomaly_type.value,
            "resolved": self.resolved,
            "resolution_reason": self.resolution_reason,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass
class TimeViolationRecord:
    """A stage that took longer than its expected duration."""

    violation_id: int
    product_id: int
    actor: str
    violated_stage: ProductStage
    """Stage whose expected duration was exceeded."""

    expected_minutes: int
    actual_minutes: int
    delay_minutes: int
    detected_at: datetime
    resolved: bool = False
    resolution_reason: str = ""
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violation_id": self.violation_id,
            "product_id": self.product_id,
            "actor": self.actor,
            "violated_stage": self.violated_stage.name,
            "expected_minutes": self.expected_minutes,
            "actual_minutes": self.actual_minutes,
            "delay_minutes": self.delay_minutes,
            "detected_at": self.detected_at.isoformat(),
            "resolved": self.resolved,
            "resolution_reason": self.resolution_reason,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass
class ActorFraudPattern:
    """Accumulated violation history of one actor."""

    actor: str
    violation_count: int = 0
    total_suspicious_value: int = 0
    risk_score: int = 0
    is_blacklisted: bool = False
    first_violation_at: Optional[datetime] = None
    last_violation_at: Optional[datetime] = None
    blacklisted_at: Optional[datetime] = None

    def copy(self) -> "ActorFraudPattern":
        return ActorFraudPattern(**self.__dict__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor": self.actor,
            "violation_count": self.violation_count,
            "total_suspicious_value": self.total_suspicious_value,
            "risk_score": self.risk_score,
            "is_blacklisted": self.is_blacklisted,
            "first_violation_at": (
                self.first_violation_at.isoformat() if self.first_violation_at else None
            ),
            "last_violation_at": (
                self.last_violation_at.isoformat() if self.last_violation_at else None
            ),
            "blacklisted_at": self.blacklisted_at.isoformat() if self.blacklisted_at else None,
        }


# ============================================================
# ANALYSIS RESULTS
# ============================================================


@dataclass(frozen=True)
class AnomalyResult:
    """
    Outcome of one price anomaly analysis.

    ``is_anomaly`` is True only when a record was allocated.
    A deviation over threshold whose confidence falls below
    the configured minimum is reported with
    ``suppressed=True`` and no record.
    """

    product_id: int
    sample_count: int
    is_anomaly: bool = False
    anomaly_id: int = NO_RECORD
    anomaly_type: Optional[AnomalyType] = None
    deviation_bp: int = 0
    confidence_score: int = 0
    mean: int = 0
    stddev: int = 0
    suppressed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "sample_count": self.sample_count,
            "is_anomaly": self.is_anomaly,
            "anomaly_id": self.anomaly_id,
            "anomaly_type": self.anomaly_type.value if self.anomaly_type else None,
            "deviation_bp": self.deviation_bp,
            "confidence_score": self.confidence_score,
            "mean": self.mean,
            "stddev": self.stddev,
            "suppressed": self.suppressed,
        }


@dataclass(frozen=True)
class ComprehensiveAnalysisResult:
    """Aggregate risk of one product and its current owner."""

    product_id: int
    owner: str
    risk_score: int
    issues: List[str] = field(default_factory=list)
    anomaly: Optional[AnomalyResult] = None
    violation_id: int = NO_RECORD
    blacklisted: bool = False
    """True when this analysis blacklisted the owner."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "owner": self.owner,
            "risk_score": self.risk_score,
            "issues": list(self.issues),
            "anomaly": self.anomaly.to_dict() if self.anomaly else None,
            "violation_id": self.violation_id,
            "blacklisted": self.blacklisted,
        }


@dataclass
class FraudState:
    """Exported engine state used by the repository."""

    histories: Dict[int, List[PriceSample]] = field(default_factory=dict)
    anomalies: List[PriceAnomalyRecord] = field(default_factory=list)
    violations: List[TimeViolationRecord] = field(default_factory=list)
    patterns: List[ActorFraudPattern] = field(default_factory=list)
    next_anomaly_id: int = 1
    next_violation_id: int = 1

"""
Fraud Detection Engine - Repository.

Snapshot persistence for price history windows, anomaly and
violation records, and actor fraud patterns. Record id
counters are stored as named counters.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from database.models import read_counter, write_counter
from product_ledger.types import ProductStage

from .engine import FraudDetectionEngine
from .models import FraudPatternRow, PriceAnomalyRow, PriceSampleRow, TimeViolationRow
from .types import (
    ActorFraudPattern,
    AnomalyType,
    FraudState,
    PriceAnomalyRecord,
    PriceSample,
    TimeViolationRecord,
)


logger = logging.getLogger(__name__)

ANOMALY_COUNTER = "fraud_detection.next_anomaly_id"
VIOLATION_COUNTER = "fraud_detection.next_violation_id"


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


class FraudRepository:
    """Persistence operations for the fraud detection engine."""

    def __init__(self, session: Session):
        self._session = session

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    def save(self, engine: FraudDetectionEngine) -> None:
        state = engine.export_state()

        for model in (PriceSampleRow, PriceAnomalyRow, TimeViolationRow, FraudPatternRow):
            self._session.execute(delete(model))

        for product_id, samples in state.histories.items():
            for position, sample in enumerate(samples):
                self._session.add(PriceSampleRow(
                    product_id=product_id,
                    position=position,
                    price=sample.price,
                    timestamp=sample.timestamp,
                    stage=int(sample.stage),
                ))

        for record in state.anomalies:
            self._session.add(PriceAnomalyRow(
                anomaly_id=record.anomaly_id,
                product_id=record.product_id,
                actor=record.actor,
                price=record.price,
                detected_at=record.detected_at,
                deviation_bp=record.deviation_bp,
                confidence_score=record.confidence_score,
                anomaly_type=record.anomaly_type.value,
                resolved=record.resolved,
                resolution_reason=record.resolution_reason,
                resolved_by=record.resolved_by,
                resolved_at=record.resolved_at,
            ))

        for record in state.violations:
            self._session.add(TimeViolationRow(
                violation_id=record.violation_id,
                product_id=record.product_id,
                actor=record.actor,
                violated_stage=int(record.violated_stage),
                expected_minutes=record.expected_minutes,
                actual_minutes=record.actual_minutes,
                delay_minutes=record.delay_minutes,
                detected_at=record.detected_at,
                resolved=record.resolved,
                resolution_reason=record.resolution_reason,
                resolved_by=record.resolved_by,
                resolved_at=record.resolved_at,
            ))

        for pattern in state.patterns:
            self._session.add(FraudPatternRow(
                actor=pattern.actor,
                violation_count=pattern.violation_count,
                total_suspicious_value=pattern.total_suspicious_value,
                risk_score=pattern.risk_score,
                is_blacklisted=pattern.is_blacklisted,
                first_violation_at=pattern.first_violation_at,
                last_violation_at=pattern.last_violation_at,
                blacklisted_at=pattern.blacklisted_at,
            ))

        write_counter(self._session, ANOMALY_COUNTER, state.next_anomaly_id)
        write_counter(self._session, VIOLATION_COUNTER, state.next_violation_id)
        self._session.flush()

        logger.info(
            f"Fraud snapshot saved: {len(state.anomalies)} anomalies, "
            f"{len(state.violations)} violations, {len(state.patterns)} patterns"
        )

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def get_blacklisted_actors(self) -> List[str]:
        rows = self._session.execute(
            select(FraudPatternRow.actor)
            .where(FraudPatternRow.is_blacklisted.is_(True))
            .order_by(FraudPatternRow.actor)
        )
        return [actor for (actor,) in rows]

    def load_into(self, engine: FraudDetectionEngine) -> FraudState:
        histories: Dict[int, List[PriceSample]] = defaultdict(list)
        sample_rows = self._session.execute(
            select(PriceSampleRow).order_by(PriceSampleRow.product_id, PriceSampleRow.position)
        ).scalars()
        for row in sample_rows:
            histories[row.product_id].append(PriceSample(
                price=row.price,
                timestamp=ensure_utc(row.timestamp),
                stage=ProductStage(row.stage),
            ))

        anomalies = [
            PriceAnomalyRecord(
                anomaly_id=row.anomaly_id,
                product_id=row.product_id,
                actor=row.actor,
                price=row.price,
                detected_at=ensure_utc(row.detected_at),
                deviation_bp=row.deviation_bp,
                confidence_score=row.confidence_score,
                anomaly_type=AnomalyType(row.anomaly_type),
                resolved=row.resolved,
                resolution_reason=row.resolution_reason,
                resolved_by=row.resolved_by,
                resolved_at=_utc(row.resolved_at),
            )
            for row in self._session.execute(
                select(PriceAnomalyRow).order_by(PriceAnomalyRow.anomaly_id)
            ).scalars()
        ]

        violations = [
            TimeViolationRecord(
                violation_id=row.violation_id,
                product_id=row.product_id,
                actor=row.actor,
                violated_stage=ProductStage(row.violated_stage),
                expected_minutes=row.expected_minutes,
                actual_minutes=row.actual_minutes,
                delay_minutes=row.delay_minutes,
                detected_at=ensure_utc(row.detected_at),
                resolved=row.resolved,
                resolution_reason=row.resolution_reason,
                resolved_by=row.resolved_by,
                resolved_at=_utc(row.resolved_at),
            )
            for row in self._session.execute(
                select(TimeViolationRow).order_by(TimeViolationRow.violation_id)
            ).scalars()
        ]

        patterns = [
            ActorFraudPattern(
                actor=row.actor,
                violation_count=row.violation_count,
                total_suspicious_value=row.total_suspicious_value,
                risk_score=row.risk_score,
                is_blacklisted=row.is_blacklisted,
                first_violation_at=_utc(row.first_violation_at),
                last_violation_at=_utc(row.last_violation_at),
                blacklisted_at=_utc(row.blacklisted_at),
            )
            for row in self._session.execute(select(FraudPatternRow)).scalars()
        ]

        state = FraudState(
            histories=dict(histories),
            anomalies=anomalies,
            violations=violations,
            patterns=patterns,
            next_anomaly_id=read_counter(self._session, ANOMALY_COUNTER, default=1),
            next_violation_id=read_counter(self._session, VIOLATION_COUNTER, default=1),
        )
        engine.import_state(state)

        logger.info(f"Fraud snapshot loaded: {len(anomalies)} anomalies")
        return state

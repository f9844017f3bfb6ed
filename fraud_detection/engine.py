"""
Fraud Detection Engine - Main Engine.

============================================================
PURPOSE
============================================================
Flags anomalous prices and abnormal stage timing, and
escalates repeat offenders toward a blacklist.

Analyses are recomputed fresh on every call from stored
history. Only their results (records, risk scores,
blacklist flags) accumulate.

============================================================
PRICE ANOMALY FLOW
============================================================
1. Append (price, timestamp, stage) from the ledger to the
   product's window (FIFO, max 100)
2. Fewer than min_history_points samples: no anomaly
3. Mean, population stddev, deviation of the current price
   from the mean in basis points
4. Deviation over threshold: classify HIGH / LOW / GENERAL
5. Confidence from history depth; record when confident
6. Update the owner's fraud pattern

============================================================
BLACKLIST
============================================================
An actor is blacklisted when their violation count reaches
max_violations_before_blacklist, or when a comprehensive
analysis scores at least 8000. Only an admin may remove
the flag; risk history is never reversed.

The blacklist is advisory. It does not block ledger
operations.

============================================================
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from actor_registry.registry import ActorRegistry
from actor_registry.types import Role
from core.clock import ClockProtocol, elapsed_minutes
from core.events import EventLog
from core.exceptions import (
    AlreadyResolvedError,
    InvalidConfigurationError,
    NotBlacklistedError,
    RecordNotFoundError,
    StateConflictError,
)
from core.guards import OperationContext, OperationGuard
from product_ledger.ledger import ProductLedger
from product_ledger.types import ProductSnapshot, ProductStage

from .config import (
    ANOMALY_WEIGHT,
    AUTO_BLACKLIST_SCORE,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    HIGH_CONFIDENCE_SAMPLES,
    INITIAL_RISK_SCORE,
    MEDIUM_CONFIDENCE_SAMPLES,
    REPEAT_OFFENDER_MIN_VIOLATIONS,
    RISK_SCORE_INCREMENT,
    STAGE_TRANSITIONS,
    TIMING_WEIGHT,
    FraudDetectionConfig,
)
from .statistics import PriceHistoryWindow, integer_mean, population_stddev
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


logger = logging.getLogger(__name__)

MONITOR = "monitor"
"""Caller recorded for analyses run without an explicit identity."""


def classify_anomaly(price: int, mean: int, stddev: int) -> AnomalyType:
    if price > mean + 2 * stddev:
        return AnomalyType.HIGH
    if price < mean - 2 * stddev:
        return AnomalyType.LOW
    return AnomalyType.GENERAL


def confidence_for(sample_count: int) -> int:
    if sample_count >= HIGH_CONFIDENCE_SAMPLES:
        return CONFIDENCE_HIGH
    if sample_count >= MEDIUM_CONFIDENCE_SAMPLES:
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_LOW


class FraudDetectionEngine:
    """
    Price anomaly and stage timing detection.

    Usage:
        fraud = FraudDetectionEngine(registry, ledger)
        result = fraud.comprehensive_analysis(product_id)
        if fraud.is_blacklisted(result.owner):
            ...
    """

    def __init__(
        self,
        registry: ActorRegistry,
        ledger: ProductLedger,
        config: Optional[FraudDetectionConfig] = None,
        clock: Optional[ClockProtocol] = None,
        events: Optional[EventLog] = None,
    ):
        self._registry = registry
        self._policy = registry.policy
        self._ledger = ledger
        self._config = config or FraudDetectionConfig()
        self._guard = OperationGuard(
            "fraud_detection",
            breaker=registry.guard.breaker,
            clock=clock or registry.guard.clock,
        )
        self._events = events or registry.events

        self._histories: Dict[int, PriceHistoryWindow] = {}
        self._anomalies: Dict[int, PriceAnomalyRecord] = {}
        self._violations: Dict[int, TimeViolationRecord] = {}
        self._patterns: Dict[str, ActorFraudPattern] = {}
        self._next_anomaly_id = 1
        self._next_violation_id = 1

        logger.info(f"FraudDetectionEngine initialized: {self._config.to_dict()}")

    @property
    def config(self) -> FraudDetectionConfig:
        return self._config

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    # --------------------------------------------------------
    # ANALYSES
    # --------------------------------------------------------

    def analyze_price_anomaly(self, product_id: int, caller: str = MONITOR) -> AnomalyResult:
        with self._guard.mutation("analyze_price_anomaly", caller) as op:
            product = self._ledger.get_product(product_id)
            if not self._config.is_active:
                return AnomalyResult(product_id=product_id, sample_count=0)
            result = self._analyze_price(op, product)
            self._events.emit(
                "PriceAnalysisCompleted",
                op.now,
                product_id=product_id,
                sample_count=result.sample_count,
                mean=result.mean,
                deviation_bp=result.deviation_bp,
                is_anomaly=result.is_anomaly,
                anomaly_id=result.anomaly_id,
            )
            return result

    def validate_stage_timings(self, product_id: int, caller: str = MONITOR) -> int:
        """
        Check how long the product has stayed at its current stage.

        Returns:
            The new violation id, or 0 when nothing was recorded
        """
        with self._guard.mutation("validate_stage_timings", caller) as op:
            product = self._ledger.get_product(product_id)
            if not self._config.is_active:
                return NO_RECORD
            return self._check_timing(op, product)

    def comprehensive_analysis(
        self,
        product_id: int,
        caller: str = MONITOR,
    ) -> ComprehensiveAnalysisResult:
        """
        Run both checks and aggregate a weighted risk score.

        Blacklists the product's current owner when the score
        reaches the auto-blacklist level.
        ``blacklisted`` is set whenever this call flagged the owner,
        including through the violation cap.
        """
        with self._guard.mutation("comprehensive_analysis", caller) as op:
            product = self._ledger.get_product(product_id)
            if not self._config.is_active:
                return ComprehensiveAnalysisResult(
                    product_id=product_id, owner=product.owner, risk_score=0
                )

            was_blacklisted = self.is_blacklisted(product.owner)
            anomaly = self._analyze_price(op, product)
            violation_id = self._check_timing(op, product)

            score = 0
            issues: List[str] = []
            if anomaly.is_anomaly:
                score += ANOMALY_WEIGHT
                issues.append(
                    f"Price anomaly ({anomaly.anomaly_type.value}): "
                    f"{anomaly.deviation_bp}bp from mean {anomaly.mean}"
                )
            if violation_id:
                violation = self._violations[violation_id]
                score += TIMING_WEIGHT
                issues.append(
                    f"Stage {violation.violated_stage.name} overdue by "
                    f"{violation.delay_minutes} minutes"
                )

            pattern = self._patterns.get(product.owner)
            if pattern is not None and pattern.violation_count >= REPEAT_OFFENDER_MIN_VIOLATIONS:
                score += pattern.risk_score
                issues.append(
                    f"Owner has {pattern.violation_count} prior violations "
                    f"(risk {pattern.risk_score})"
                )

            if score >= AUTO_BLACKLIST_SCORE and not self.is_blacklisted(product.owner):
                pattern = self._patterns.setdefault(
                    product.owner, ActorFraudPattern(actor=product.owner)
                )
                self._blacklist(op, pattern, f"comprehensive risk score {score}")
            blacklisted = not was_blacklisted and self.is_blacklisted(product.owner)

            result = ComprehensiveAnalysisResult(
                product_id=product_id,
                owner=product.owner,
                risk_score=score,
                issues=issues,
                anomaly=anomaly,
                violation_id=violation_id,
                blacklisted=blacklisted,
            )
            self._events.emit(
                "ComprehensiveAnalysisCompleted",
                op.now,
                product_id=product_id,
                owner=product.owner,
                risk_score=score,
                issues=list(issues),
                blacklisted=blacklisted,
            )
            return result

    # --------------------------------------------------------
    # RESOLUTION
    # --------------------------------------------------------

    def resolve_anomaly(self, caller: str, anomaly_id: int, reason: str) -> None:
        with self._guard.mutation("resolve_anomaly", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.FRAUD_ANALYST, "resolve anomalies")
            )
            record = self._anomalies.get(anomaly_id)
            if record is None:
                raise RecordNotFoundError("price_anomaly", anomaly_id)
            if record.resolved:
                raise AlreadyResolvedError("price_anomaly", anomaly_id)

            record.resolved = True
            record.resolution_reason = reason
            record.resolved_by = caller
            record.resolved_at = op.now
            self._events.emit(
                "AnomalyResolved", op.now, anomaly_id=anomaly_id, reason=reason, by=caller
            )

    def resolve_time_violation(self, caller: str, violation_id: int, reason: str) -> None:
        with self._guard.mutation("resolve_time_violation", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.FRAUD_ANALYST, "resolve time violations")
            )
            record = self._violations.get(violation_id)
            if record is None:
                raise RecordNotFoundError("time_violation", violation_id)
            if record.resolved:
                raise AlreadyResolvedError("time_violation", violation_id)

            record.resolved = True
            record.resolution_reason = reason
            record.resolved_by = caller
            record.resolved_at = op.now
            self._events.emit(
                "TimeViolationResolved",
                op.now,
                violation_id=violation_id,
                reason=reason,
                by=caller,
            )

    def remove_from_blacklist(self, caller: str, actor: str) -> None:
        """Clear the blacklist flag. Violations and risk score stay."""
        with self._guard.mutation("remove_from_blacklist", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "remove blacklist entries")
            )
            pattern = self._patterns.get(actor)
            if pattern is None or not pattern.is_blacklisted:
                raise NotBlacklistedError(actor)

            pattern.is_blacklisted = False
            pattern.blacklisted_at = None
            logger.info(f"Actor {actor} removed from blacklist by {caller}")
            self._events.emit(
                "BlacklistRemoved",
                op.now,
                actor=actor,
                risk_score=pattern.risk_score,
                by=caller,
            )

    def purge_product(self, caller: str, product_id: int) -> int:
        """
        Drop price history and findings kept for an erased product.

        Actor fraud patterns are untouched.

        Returns:
            Number of anomaly and violation records removed
        """
        with self._guard.mutation("purge_product", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.REGULATOR, "purge product data")
            )
            if self._ledger.exists(product_id):
                raise StateConflictError(
                    f"Product {product_id} is still on the ledger",
                    context={"product_id": product_id},
                )

            self._histories.pop(product_id, None)
            anomaly_ids = [i for i, r in self._anomalies.items() if r.product_id == product_id]
            violation_ids = [i for i, r in self._violations.items() if r.product_id == product_id]
            for anomaly_id in anomaly_ids:
                del self._anomalies[anomaly_id]
            for violation_id in violation_ids:
                del self._violations[violation_id]

            removed = len(anomaly_ids) + len(violation_ids)
            logger.info(f"Purged fraud data for erased product {product_id}: {removed} records")
            self._events.emit(
                "ProductDataPurged",
                op.now,
                product_id=product_id,
                scope="fraud_detection",
                records_removed=removed,
                by=caller,
            )
            return removed

    # --------------------------------------------------------
    # CONFIGURATION
    # --------------------------------------------------------

    def update_detection_config(self, caller: str, **changes: Any) -> FraudDetectionConfig:
        """
        Replace detection thresholds atomically.

        Accepted keys: price_deviation_threshold_bp,
        time_deviation_threshold_minutes, min_history_points,
        confidence_threshold, max_violations_before_blacklist,
        is_active.
        """
        with self._guard.mutation("update_detection_config", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "configure fraud detection")
            )
            allowed = FraudDetectionConfig.tunable_keys()
            for key, value in changes.items():
                if key not in allowed:
                    raise InvalidConfigurationError(key, value, "unknown setting")
                self._check_setting(key, value)

            self._config = replace(self._config, **changes)
            self._events.emit(
                "DetectionConfigUpdated", op.now, changes=dict(changes), by=caller
            )
            return self._config

    def set_expected_durations(self, caller: str, durations: Sequence[int]) -> None:
        with self._guard.mutation("set_expected_durations", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "configure fraud detection")
            )
            durations = tuple(durations)
            if len(durations) != STAGE_TRANSITIONS:
                raise InvalidConfigurationError(
                    "expected_durations",
                    list(durations),
                    f"exactly {STAGE_TRANSITIONS} entries required",
                )
            if any(not isinstance(d, int) or d < 0 for d in durations):
                raise InvalidConfigurationError(
                    "expected_durations", list(durations), "minutes must be non-negative integers"
                )

            self._config = replace(self._config, expected_durations=durations)
            self._events.emit(
                "ExpectedDurationsUpdated", op.now, durations=list(durations), by=caller
            )

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def is_blacklisted(self, actor: str) -> bool:
        pattern = self._patterns.get(actor)
        return pattern is not None and pattern.is_blacklisted

    def get_fraud_pattern(self, actor: str) -> Optional[ActorFraudPattern]:
        pattern = self._patterns.get(actor)
        return pattern.copy() if pattern is not None else None

    def get_anomaly(self, anomaly_id: int) -> PriceAnomalyRecord:
        record = self._anomalies.get(anomaly_id)
        if record is None:
            raise RecordNotFoundError("price_anomaly", anomaly_id)
        return replace(record)

    def get_time_violation(self, violation_id: int) -> TimeViolationRecord:
        record = self._violations.get(violation_id)
        if record is None:
            raise RecordNotFoundError("time_violation", violation_id)
        return replace(record)

    def get_price_history(self, product_id: int) -> List[PriceSample]:
        window = self._histories.get(product_id)
        return window.samples() if window is not None else []

    def get_unresolved_anomalies(self) -> List[PriceAnomalyRecord]:
        return [replace(r) for _, r in sorted(self._anomalies.items()) if not r.resolved]

    def get_unresolved_violations(self) -> List[TimeViolationRecord]:
        return [replace(r) for _, r in sorted(self._violations.items()) if not r.resolved]

    def get_blacklisted_actors(self) -> List[str]:
        return sorted(a for a, p in self._patterns.items() if p.is_blacklisted)

    # --------------------------------------------------------
    # PERSISTENCE SUPPORT
    # --------------------------------------------------------

    def export_state(self) -> FraudState:
        return FraudState(
            histories={pid: w.samples() for pid, w in self._histories.items()},
            anomalies=[replace(r) for _, r in sorted(self._anomalies.items())],
            violations=[replace(r) for _, r in sorted(self._violations.items())],
            patterns=[p.copy() for p in self._patterns.values()],
            next_anomaly_id=self._next_anomaly_id,
            next_violation_id=self._next_violation_id,
        )

    def import_state(self, state: FraudState) -> None:
        self._histories = {
            pid: PriceHistoryWindow(MAX_HISTORY_POINTS, samples)
            for pid, samples in state.histories.items()
        }
        self._anomalies = {r.anomaly_id: replace(r) for r in state.anomalies}
        self._violations = {r.violation_id: replace(r) for r in state.violations}
        self._patterns = {p.actor: p.copy() for p in state.patterns}
        self._next_anomaly_id = max(state.next_anomaly_id, max(self._anomalies, default=0) + 1)
        self._next_violation_id = max(
            state.next_violation_id, max(self._violations, default=0) + 1
        )

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _analyze_price(self, op: OperationContext, product: ProductSnapshot) -> AnomalyResult:
        window = self._histories.get(product.product_id)
        if window is None:
            window = PriceHistoryWindow(MAX_HISTORY_POINTS)
            self._histories[product.product_id] = window
        window.append(product.price, product.timestamp, product.stage)

        count = len(window)
        if count < self._config.min_history_points:
            logger.debug(
                f"Product {product.product_id}: {count} samples, "
                f"need {self._config.min_history_points}"
            )
            return AnomalyResult(product_id=product.product_id, sample_count=count)

        prices = window.prices()
        mean = integer_mean(prices)
        stddev = population_stddev(prices, mean)
        deviation = abs(product.price - mean) * 10000 // mean if mean > 0 else 0
        logger.debug(
            f"Product {product.product_id}: mean={mean} stddev={stddev} deviation={deviation}bp"
        )

        if deviation <= self._config.price_deviation_threshold_bp:
            return AnomalyResult(
                product_id=product.product_id,
                sample_count=count,
                deviation_bp=deviation,
                mean=mean,
                stddev=stddev,
            )

        anomaly_type = classify_anomaly(product.price, mean, stddev)
        confidence = confidence_for(count)
        if confidence < self._config.confidence_threshold:
            logger.info(
                f"Product {product.product_id}: {anomaly_type.value} deviation suppressed "
                f"(confidence {confidence} < {self._config.confidence_threshold})"
            )
            return AnomalyResult(
                product_id=product.product_id,
                sample_count=count,
                anomaly_type=anomaly_type,
                deviation_bp=deviation,
                confidence_score=confidence,
                mean=mean,
                stddev=stddev,
                suppressed=True,
            )

        record = PriceAnomalyRecord(
            anomaly_id=self._next_anomaly_id,
            product_id=product.product_id,
            actor=product.owner,
            price=product.price,
            detected_at=op.now,
            deviation_bp=deviation,
            confidence_score=confidence,
            anomaly_type=anomaly_type,
        )
        self._next_anomaly_id += 1
        self._anomalies[record.anomaly_id] = record

        logger.warning(
            f"Price anomaly #{record.anomaly_id} on product {product.product_id}: "
            f"{anomaly_type.value} {deviation}bp"
        )
        self._events.emit(
            "PriceAnomalyDetected",
            op.now,
            anomaly_id=record.anomaly_id,
            product_id=product.product_id,
            actor=product.owner,
            price=product.price,
            deviation_bp=deviation,
            anomaly_type=anomaly_type.value,
            confidence_score=confidence,
        )
        self._update_pattern(op, product.owner, product.price)

        return AnomalyResult(
            product_id=product.product_id,
            sample_count=count,
            is_anomaly=True,
            anomaly_id=record.anomaly_id,
            anomaly_type=anomaly_type,
            deviation_bp=deviation,
            confidence_score=confidence,
            mean=mean,
            stddev=stddev,
        )

    def _check_timing(self, op: OperationContext, product: ProductSnapshot) -> int:
        if product.stage == ProductStage.PLANTED:
            return NO_RECORD

        expected = self._config.expected_minutes(product.stage)
        elapsed = elapsed_minutes(product.timestamp, op.now)
        if elapsed <= expected + self._config.time_deviation_threshold_minutes:
            return NO_RECORD

        record = TimeViolationRecord(
            violation_id=self._next_violation_id,
            product_id=product.product_id,
            actor=product.owner,
            violated_stage=ProductStage(product.stage - 1),
            expected_minutes=expected,
            actual_minutes=elapsed,
            delay_minutes=elapsed - expected,
            detected_at=op.now,
        )
        self._next_violation_id += 1
        self._violations[record.violation_id] = record

        logger.warning(
            f"Time violation #{record.violation_id} on product {product.product_id}: "
            f"{elapsed} min vs expected {expected}"
        )
        self._events.emit(
            "TimeViolationDetected",
            op.now,
            violation_id=record.violation_id,
            product_id=product.product_id,
            actor=product.owner,
            stage=record.violated_stage.name,
            expected_minutes=expected,
            actual_minutes=elapsed,
        )
        self._update_pattern(op, product.owner, product.price)
        return record.violation_id

    def _update_pattern(self, op: OperationContext, actor: str, suspicious_value: int) -> None:
        pattern = self._patterns.get(actor)
        if pattern is None or pattern.violation_count == 0:
            pattern = pattern or ActorFraudPattern(actor=actor)
            pattern.violation_count = 1
            pattern.total_suspicious_value = suspicious_value
            pattern.risk_score = INITIAL_RISK_SCORE
            pattern.first_violation_at = op.now
            self._patterns[actor] = pattern
        else:
            pattern.violation_count += 1
            pattern.total_suspicious_value += suspicious_value
            pattern.risk_score += RISK_SCORE_INCREMENT
        pattern.last_violation_at = op.now

        self._events.emit(
            "FraudPatternUpdated",
            op.now,
            actor=actor,
            violation_count=pattern.violation_count,
            risk_score=pattern.risk_score,
        )

        if (
            not pattern.is_blacklisted
            and pattern.violation_count >= self._config.max_violations_before_blacklist
        ):
            self._blacklist(op, pattern, f"{pattern.violation_count} violations")

    def _blacklist(self, op: OperationContext, pattern: ActorFraudPattern, reason: str) -> None:
        pattern.is_blacklisted = True
        pattern.blacklisted_at = op.now
        logger.warning(f"Actor {pattern.actor} blacklisted: {reason}")
        self._events.emit(
            "ActorBlacklisted",
            op.now,
            actor=pattern.actor,
            risk_score=pattern.risk_score,
            violation_count=pattern.violation_count,
            reason=reason,
        )

    def _check_setting(self, key: str, value: Any) -> None:
        if key == "is_active":
            if not isinstance(value, bool):
                raise InvalidConfigurationError(key, value, "must be a boolean")
            return
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidConfigurationError(key, value, "must be an integer")
        if key == "min_history_points" and not 1 <= value <= MAX_HISTORY_POINTS:
            raise InvalidConfigurationError(key, value, f"must be within 1..{MAX_HISTORY_POINTS}")
        if key == "confidence_threshold" and not 0 <= value <= 10000:
            raise InvalidConfigurationError(key, value, "must be within 0..10000")
        if key in ("price_deviation_threshold_bp", "max_violations_before_blacklist") and value <= 0:
            raise InvalidConfigurationError(key, value, "must be positive")
        if key == "time_deviation_threshold_minutes" and value < 0:
            raise InvalidConfigurationError(key, value, "must be non-negative")

"""
Tests for the Fraud Detection Engine.

============================================================
PURPOSE
============================================================
1. Integer statistics and the bounded history window
2. Price anomaly detection and confidence gating
3. Stage timing violations
4. Fraud patterns and the blacklist
5. Comprehensive analysis scoring
6. Resolution and configuration

============================================================
"""

from datetime import timedelta

import pytest

from core.exceptions import (
    AlreadyResolvedError,
    InvalidConfigurationError,
    NotBlacklistedError,
    ProductNotFoundError,
    RecordNotFoundError,
    StateConflictError,
    UnauthorizedError,
)
from fraud_detection import (
    DEFAULT_EXPECTED_DURATIONS,
    AnomalyType,
    FraudDetectionEngine,
    PriceHistoryWindow,
    integer_mean,
    integer_sqrt,
    population_stddev,
)
from fraud_detection.engine import classify_anomaly, confidence_for
from product_ledger import ProductStage
from tests.helpers import ADMIN, ANALYST, FARMER, REGULATOR, START, STRANGER


GRACE = 1440
PLANTED_MINUTES = DEFAULT_EXPECTED_DURATIONS[0]


def build_history(fraud, ledger, product_id, samples=5, spike=1000):
    """Record ``samples`` steady prices, then reprice the product to ``spike``."""
    for _ in range(samples):
        fraud.analyze_price_anomaly(product_id)
    ledger.transfer_ownership(FARMER, product_id, FARMER, spike)


# ============================================================
# STATISTICS TESTS
# ============================================================

class TestStatistics:
    """Tests for integer-only statistics."""

    @pytest.mark.parametrize("n,expected", [
        (0, 0),
        (1, 1),
        (2, 1),
        (3, 1),
        (4, 2),
        (8, 2),
        (9, 3),
        (99, 9),
        (112500, 335),
        (10 ** 12, 10 ** 6),
    ])
    def test_integer_sqrt(self, n, expected):
        assert integer_sqrt(n) == expected

    def test_integer_sqrt_negative(self):
        with pytest.raises(ValueError):
            integer_sqrt(-1)

    def test_mean_and_stddev_are_floored(self):
        values = [100, 100, 100, 100, 100, 1000]
        mean = integer_mean(values)

        assert mean == 250
        assert population_stddev(values, mean) == 335

    def test_empty_sequences(self):
        with pytest.raises(ValueError):
            integer_mean([])
        with pytest.raises(ValueError):
            population_stddev([], 0)

    def test_window_evicts_oldest(self):
        window = PriceHistoryWindow(maxlen=100)
        for price in range(1, 102):
            window.append(price, START, ProductStage.PLANTED)

        assert len(window) == 100
        assert window.prices()[0] == 2
        assert window.prices()[-1] == 101

    def test_window_seeded_from_samples(self):
        first = PriceHistoryWindow(maxlen=3)
        for price in (1, 2, 3):
            first.append(price, START, ProductStage.GROWING)

        restored = PriceHistoryWindow(3, first.samples())
        restored.append(4, START, ProductStage.GROWING)

        assert restored.prices() == [2, 3, 4]

    def test_classify_anomaly(self):
        assert classify_anomaly(1000, 250, 335) == AnomalyType.HIGH
        assert classify_anomaly(10, 500, 100) == AnomalyType.LOW
        assert classify_anomaly(700, 500, 150) == AnomalyType.GENERAL

    def test_confidence_tiers(self):
        assert confidence_for(5) == 5000
        assert confidence_for(10) == 7500
        assert confidence_for(19) == 7500
        assert confidence_for(20) == 9000


# ============================================================
# PRICE ANOMALY TESTS
# ============================================================

class TestPriceAnomaly:
    """Tests for rolling price analysis."""

    def test_no_analysis_below_min_history(self, fraud, ledger, product_id):
        for expected_count in range(1, 5):
            result = fraud.analyze_price_anomaly(product_id)
            assert result.sample_count == expected_count
            assert not result.is_anomaly
            assert result.mean == 0

    def test_steady_price_is_not_anomalous(self, fraud, product_id):
        for _ in range(5):
            result = fraud.analyze_price_anomaly(product_id)

        assert result.sample_count == 5
        assert result.mean == 150
        assert result.deviation_bp == 0
        assert not result.is_anomaly

    def test_spike_records_anomaly(self, fraud, ledger, product_id, events, clock):
        build_history(fraud, ledger, product_id)

        result = fraud.analyze_price_anomaly(product_id)

        assert result.is_anomaly
        assert result.anomaly_type == AnomalyType.HIGH
        assert result.confidence_score == 5000
        record = fraud.get_anomaly(result.anomaly_id)
        assert record.actor == FARMER
        assert record.price == 1000
        assert record.detected_at == clock.now()
        assert not record.resolved
        assert "PriceAnomalyDetected" in [n.name for n in events.all()]

    def test_low_confidence_is_suppressed(self, fraud, ledger, product_id):
        fraud.update_detection_config(ADMIN, confidence_threshold=7500)
        build_history(fraud, ledger, product_id)

        result = fraud.analyze_price_anomaly(product_id)

        assert result.suppressed
        assert not result.is_anomaly
        assert result.anomaly_type == AnomalyType.HIGH
        assert fraud.get_unresolved_anomalies() == []
        assert fraud.get_fraud_pattern(FARMER) is None

    def test_history_is_bounded(self, fraud, ledger, product_id):
        fraud.analyze_price_anomaly(product_id)
        ledger.transfer_ownership(FARMER, product_id, FARMER, 151)
        for _ in range(100):
            fraud.analyze_price_anomaly(product_id)

        history = fraud.get_price_history(product_id)
        assert len(history) == 100
        assert all(sample.price == 151 for sample in history)

    def test_every_analysis_is_reported(self, fraud, ledger, product_id, events):
        build_history(fraud, ledger, product_id)
        result = fraud.analyze_price_anomaly(product_id)

        reports = events.all("PriceAnalysisCompleted")
        assert [n.payload["sample_count"] for n in reports] == [1, 2, 3, 4, 5, 6]
        assert [n.payload["is_anomaly"] for n in reports] == [False] * 5 + [True]
        assert reports[-1].payload["product_id"] == product_id
        assert reports[-1].payload["mean"] == result.mean
        assert reports[-1].payload["deviation_bp"] == result.deviation_bp
        assert reports[-1].payload["anomaly_id"] == result.anomaly_id

    def test_unknown_product(self, fraud):
        with pytest.raises(ProductNotFoundError):
            fraud.analyze_price_anomaly(42)

    def test_inactive_engine_records_nothing(self, fraud, product_id):
        fraud.update_detection_config(ADMIN, is_active=False)

        result = fraud.analyze_price_anomaly(product_id)

        assert result.sample_count == 0
        assert fraud.get_price_history(product_id) == []
        assert fraud.validate_stage_timings(product_id) == 0


# ============================================================
# STAGE TIMING TESTS
# ============================================================

class TestStageTimings:
    """Tests for expected stage durations."""

    def test_initial_stage_is_never_checked(self, fraud, clock, product_id):
        clock.advance(days=365)
        assert fraud.validate_stage_timings(product_id) == 0

    def test_within_grace_period(self, fraud, ledger, clock, product_id):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=PLANTED_MINUTES + GRACE)

        assert fraud.validate_stage_timings(product_id) == 0

    def test_overdue_stage_records_violation(self, fraud, ledger, clock, product_id):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)

        violation_id = fraud.validate_stage_timings(product_id)

        assert violation_id == 1
        record = fraud.get_time_violation(violation_id)
        assert record.violated_stage == ProductStage.PLANTED
        assert record.expected_minutes == PLANTED_MINUTES
        assert record.actual_minutes == PLANTED_MINUTES + GRACE + 1
        assert record.delay_minutes == GRACE + 1

        pattern = fraud.get_fraud_pattern(FARMER)
        assert pattern.violation_count == 1
        assert pattern.risk_score == 1000
        assert pattern.total_suspicious_value == 150

    def test_custom_durations(self, fraud, ledger, clock, product_id):
        fraud.set_expected_durations(ADMIN, [10] * 8)
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=10 + GRACE + 1)

        assert fraud.validate_stage_timings(product_id) == 1


# ============================================================
# FRAUD PATTERN AND BLACKLIST TESTS
# ============================================================

class TestBlacklist:
    """Tests for escalation and admin removal."""

    def test_three_anomalies_blacklist_owner(self, fraud, ledger, product_id, events):
        build_history(fraud, ledger, product_id)

        results = [fraud.analyze_price_anomaly(product_id) for _ in range(3)]

        assert all(r.is_anomaly for r in results)
        assert fraud.is_blacklisted(FARMER)
        assert fraud.get_blacklisted_actors() == [FARMER]
        pattern = fraud.get_fraud_pattern(FARMER)
        assert pattern.violation_count == 3
        assert pattern.risk_score == 1000 + 2 * 1500
        assert pattern.blacklisted_at is not None
        assert len(events.all("ActorBlacklisted")) == 1

    def test_two_anomalies_do_not_blacklist(self, fraud, ledger, product_id):
        build_history(fraud, ledger, product_id)
        fraud.analyze_price_anomaly(product_id)
        fraud.analyze_price_anomaly(product_id)

        assert fraud.get_fraud_pattern(FARMER).violation_count == 2
        assert not fraud.is_blacklisted(FARMER)

    def test_blacklist_persists_until_admin_removal(self, fraud, ledger, product_id):
        build_history(fraud, ledger, product_id)
        for _ in range(3):
            fraud.analyze_price_anomaly(product_id)

        ledger.transfer_ownership(FARMER, product_id, FARMER, 1000)
        assert fraud.is_blacklisted(FARMER)

        with pytest.raises(UnauthorizedError):
            fraud.remove_from_blacklist(ANALYST, FARMER)
        fraud.remove_from_blacklist(ADMIN, FARMER)

        pattern = fraud.get_fraud_pattern(FARMER)
        assert not fraud.is_blacklisted(FARMER)
        assert pattern.violation_count == 3
        assert pattern.risk_score == 4000

    def test_remove_when_not_blacklisted(self, fraud):
        with pytest.raises(NotBlacklistedError):
            fraud.remove_from_blacklist(ADMIN, STRANGER)

    def test_blacklist_does_not_block_ledger(self, fraud, ledger, product_id):
        build_history(fraud, ledger, product_id)
        for _ in range(3):
            fraud.analyze_price_anomaly(product_id)

        assert ledger.create_product(FARMER, 1, 100, "0xloc") == product_id + 1


# ============================================================
# COMPREHENSIVE ANALYSIS TESTS
# ============================================================

class TestComprehensiveAnalysis:
    """Tests for aggregate risk scoring."""

    def test_clean_product(self, fraud, product_id, events):
        result = fraud.comprehensive_analysis(product_id)

        assert result.risk_score == 0
        assert result.issues == []
        assert result.owner == FARMER
        assert not result.blacklisted
        assert events.last().name == "ComprehensiveAnalysisCompleted"

    def test_timing_only(self, fraud, ledger, clock, product_id):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)

        result = fraud.comprehensive_analysis(product_id)

        assert result.risk_score == 3000
        assert result.violation_id == 1
        assert len(result.issues) == 1
        assert not result.blacklisted

    def test_combined_findings_auto_blacklist(self, fraud, ledger, clock, product_id):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        build_history(fraud, ledger, product_id)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)

        result = fraud.comprehensive_analysis(product_id)

        # anomaly + timing + repeat offender risk (1000 + 1500)
        assert result.risk_score == 4000 + 3000 + 2500
        assert len(result.issues) == 3
        assert result.anomaly.is_anomaly
        assert result.blacklisted
        assert fraud.is_blacklisted(FARMER)
        assert fraud.get_fraud_pattern(FARMER).violation_count == 2

    def test_violation_cap_is_reported(self, fraud, ledger, clock, product_id, events):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)
        fraud.validate_stage_timings(product_id)
        fraud.validate_stage_timings(product_id)
        assert not fraud.is_blacklisted(FARMER)

        result = fraud.comprehensive_analysis(product_id)

        # timing + repeat offender risk (1000 + 2 * 1500), below auto-blacklist
        assert result.risk_score == 3000 + 4000
        assert result.blacklisted
        assert events.last().payload["blacklisted"] is True
        assert fraud.comprehensive_analysis(product_id).blacklisted is False

    def test_inactive_engine(self, fraud, product_id):
        fraud.update_detection_config(ADMIN, is_active=False)
        result = fraud.comprehensive_analysis(product_id)
        assert result.risk_score == 0
        assert result.anomaly is None


# ============================================================
# RESOLUTION TESTS
# ============================================================

class TestResolution:
    """Tests for analyst resolution of findings."""

    def test_resolve_anomaly(self, fraud, ledger, product_id):
        build_history(fraud, ledger, product_id)
        anomaly_id = fraud.analyze_price_anomaly(product_id).anomaly_id

        fraud.resolve_anomaly(ANALYST, anomaly_id, "seasonal price")

        record = fraud.get_anomaly(anomaly_id)
        assert record.resolved
        assert record.resolution_reason == "seasonal price"
        assert record.resolved_by == ANALYST
        assert fraud.get_unresolved_anomalies() == []
        with pytest.raises(AlreadyResolvedError):
            fraud.resolve_anomaly(ANALYST, anomaly_id, "again")

    def test_resolution_keeps_pattern(self, fraud, ledger, product_id):
        build_history(fraud, ledger, product_id)
        anomaly_id = fraud.analyze_price_anomaly(product_id).anomaly_id

        fraud.resolve_anomaly(ANALYST, anomaly_id, "ok")

        assert fraud.get_fraud_pattern(FARMER).violation_count == 1

    def test_resolve_requires_analyst(self, fraud):
        with pytest.raises(UnauthorizedError):
            fraud.resolve_anomaly(ADMIN, 1, "x")

    def test_resolve_unknown_records(self, fraud):
        with pytest.raises(RecordNotFoundError):
            fraud.resolve_anomaly(ANALYST, 9, "x")
        with pytest.raises(RecordNotFoundError):
            fraud.resolve_time_violation(ANALYST, 9, "x")

    def test_resolve_time_violation(self, fraud, ledger, clock, product_id):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)
        violation_id = fraud.validate_stage_timings(product_id)

        fraud.resolve_time_violation(ANALYST, violation_id, "weather delay")

        assert fraud.get_unresolved_violations() == []
        assert fraud.get_time_violation(violation_id).resolved_at == clock.now()


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestConfiguration:
    """Tests for admin-tunable thresholds."""

    def test_update_config(self, fraud, events):
        config = fraud.update_detection_config(
            ADMIN, min_history_points=10, price_deviation_threshold_bp=5000
        )

        assert config.min_history_points == 10
        assert fraud.config.price_deviation_threshold_bp == 5000
        assert events.last().name == "DetectionConfigUpdated"

    @pytest.mark.parametrize("changes", [
        {"unknown_setting": 1},
        {"min_history_points": 0},
        {"min_history_points": 101},
        {"confidence_threshold": 10001},
        {"max_violations_before_blacklist": 0},
        {"is_active": "yes"},
        {"price_deviation_threshold_bp": 1.5},
    ])
    def test_invalid_changes_rejected(self, fraud, changes):
        before = fraud.config
        with pytest.raises(InvalidConfigurationError):
            fraud.update_detection_config(ADMIN, **changes)
        assert fraud.config == before

    def test_update_requires_admin(self, fraud):
        with pytest.raises(UnauthorizedError):
            fraud.update_detection_config(ANALYST, is_active=False)

    def test_expected_durations_validation(self, fraud):
        with pytest.raises(InvalidConfigurationError):
            fraud.set_expected_durations(ADMIN, [1] * 7)
        with pytest.raises(InvalidConfigurationError):
            fraud.set_expected_durations(ADMIN, [1] * 7 + [-1])

        fraud.set_expected_durations(ADMIN, list(range(8)))
        assert fraud.config.expected_minutes(ProductStage.SOLD) == 7

    def test_export_import_roundtrip(self, fraud, registry, ledger, product_id):
        build_history(fraud, ledger, product_id)
        fraud.analyze_price_anomaly(product_id)

        restored = FraudDetectionEngine(registry, ledger)
        restored.import_state(fraud.export_state())

        assert restored.get_price_history(product_id) == fraud.get_price_history(product_id)
        assert restored.get_fraud_pattern(FARMER) == fraud.get_fraud_pattern(FARMER)
        assert restored.analyze_price_anomaly(product_id).anomaly_id == 2

    def test_sample_timestamps_follow_ledger(self, fraud, ledger, clock, product_id):
        clock.advance(hours=1)
        fraud.analyze_price_anomaly(product_id)

        sample = fraud.get_price_history(product_id)[0]
        assert sample.timestamp == START
        assert clock.now() - sample.timestamp == timedelta(hours=1)


# ============================================================
# PURGE TESTS
# ============================================================

class TestPurgeProduct:
    """Tests for dropping fraud data of erased products."""

    def test_purge_after_erasure(self, fraud, ledger, clock, product_id, events):
        ledger.advance_stage(FARMER, product_id, ProductStage.GROWING)
        build_history(fraud, ledger, product_id)
        clock.advance(minutes=PLANTED_MINUTES + GRACE + 1)
        fraud.comprehensive_analysis(product_id)
        ledger.erase_product(REGULATOR, product_id)

        assert fraud.purge_product(REGULATOR, product_id) == 2

        assert fraud.get_price_history(product_id) == []
        assert fraud.get_unresolved_anomalies() == []
        assert fraud.get_unresolved_violations() == []
        assert fraud.get_fraud_pattern(FARMER).violation_count == 2
        assert events.last().name == "ProductDataPurged"

    def test_purge_requires_regulator(self, fraud, ledger, product_id):
        fraud.analyze_price_anomaly(product_id)
        ledger.erase_product(REGULATOR, product_id)

        with pytest.raises(UnauthorizedError):
            fraud.purge_product(ANALYST, product_id)
        assert len(fraud.get_price_history(product_id)) == 1

    def test_live_product_is_conflict(self, fraud, product_id):
        fraud.analyze_price_anomaly(product_id)

        with pytest.raises(StateConflictError):
            fraud.purge_product(REGULATOR, product_id)
        assert len(fraud.get_price_history(product_id)) == 1

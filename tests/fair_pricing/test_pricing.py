"""
Tests for the Fair Pricing Engine.

============================================================
PURPOSE
============================================================
1. Producer registration and ratings
2. Penalty-driven suspension
3. Minimum price computation
4. Price validation gate
5. Oracle and admin configuration

============================================================
"""

import pytest

from core.exceptions import (
    AlreadyRegisteredError,
    InsufficientPriceError,
    InvalidConfigurationError,
    InvalidPriceError,
    InvalidRatingError,
    PriceTooVolatileError,
    ProducerNotRegisteredError,
    ProductNotFoundError,
    RecordNotFoundError,
    StateConflictError,
    UnauthorizedError,
)
from fair_pricing import DEFAULT_RATING, MAX_RATING, PRICE_UNIT, deviation_bp
from tests.helpers import ADMIN, FARMER, ORACLE, PROCESSOR, PROTECTOR, REGULATOR, STRANGER


@pytest.fixture
def registered(pricing):
    pricing.register_producer(ADMIN, FARMER)
    return pricing


# ============================================================
# REGISTRATION TESTS
# ============================================================

class TestRegistration:
    """Tests for producer profiles."""

    def test_register_creates_default_profile(self, pricing, clock):
        profile = pricing.register_producer(ADMIN, FARMER)

        assert profile.is_active
        assert profile.rating == DEFAULT_RATING
        assert profile.transaction_count == 0
        assert profile.penalty_count == 0
        assert profile.registered_at == clock.now()

    def test_requires_admin(self, pricing):
        with pytest.raises(UnauthorizedError):
            pricing.register_producer(PROTECTOR, FARMER)
        assert not pricing.is_registered(FARMER)

    def test_registering_active_profile_is_conflict(self, registered):
        with pytest.raises(AlreadyRegisteredError):
            registered.register_producer(ADMIN, FARMER)

    def test_unknown_profile(self, pricing):
        with pytest.raises(ProducerNotRegisteredError):
            pricing.get_producer_profile(STRANGER)
        assert pricing.get_producer_rating(STRANGER) == DEFAULT_RATING

    def test_profile_reads_are_idempotent(self, registered):
        assert registered.get_producer_profile(FARMER) == registered.get_producer_profile(FARMER)


# ============================================================
# RATING TESTS
# ============================================================

class TestRatings:
    """Tests for rating averages and penalties."""

    def test_rating_is_truncated_average(self, registered):
        for score in (80, 90, 61):
            registered.rate_producer(PROTECTOR, FARMER, score, "delivery")

        profile = registered.get_producer_profile(FARMER)
        assert profile.rating == (80 + 90 + 61) // 3
        assert profile.rating_count == 3

    def test_rate_returns_new_rating(self, registered):
        assert registered.rate_producer(PROTECTOR, FARMER, 70) == 70
        assert registered.rate_producer(PROTECTOR, FARMER, 75) == 72

    def test_transactions_do_not_dilute_rating(self, registered, product_id):
        registered.rate_producer(PROTECTOR, FARMER, 70)
        registered.validate_price(PROCESSOR, product_id, 150, FARMER)
        registered.validate_price(PROCESSOR, product_id, 150, FARMER)

        profile = registered.get_producer_profile(FARMER)
        assert profile.transaction_count == 2
        assert profile.rating_count == 1
        assert registered.rate_producer(PROTECTOR, FARMER, 80) == 75

    def test_score_above_max(self, registered):
        registered.rate_producer(PROTECTOR, FARMER, MAX_RATING)
        with pytest.raises(InvalidRatingError):
            registered.rate_producer(PROTECTOR, FARMER, MAX_RATING + 1)
        assert registered.get_producer_profile(FARMER).rating_count == 1

    def test_requires_protection_role(self, registered):
        with pytest.raises(UnauthorizedError):
            registered.rate_producer(ADMIN, FARMER, 50)

    def test_unregistered_producer(self, pricing):
        with pytest.raises(ProducerNotRegisteredError):
            pricing.rate_producer(PROTECTOR, FARMER, 50)

    def test_suspension_after_five_penalties(self, registered):
        for _ in range(4):
            registered.rate_producer(PROTECTOR, FARMER, 10, "late")
        assert registered.get_producer_profile(FARMER).is_active

        registered.rate_producer(PROTECTOR, FARMER, 10, "late")

        profile = registered.get_producer_profile(FARMER)
        assert not profile.is_active
        assert profile.penalty_count == 5

    def test_cutoff_score_is_not_a_penalty(self, registered):
        for _ in range(6):
            registered.rate_producer(PROTECTOR, FARMER, MAX_RATING // 4)

        profile = registered.get_producer_profile(FARMER)
        assert profile.penalty_count == 0
        assert profile.is_active

    def test_reactivation_resets_penalties(self, registered, events):
        for _ in range(5):
            registered.rate_producer(PROTECTOR, FARMER, 0)
        assert events.all("ProducerSuspended")

        registered.register_producer(ADMIN, FARMER)

        profile = registered.get_producer_profile(FARMER)
        assert profile.is_active
        assert profile.penalty_count == 0
        assert profile.rating_count == 5
        assert events.last().name == "ProducerReactivated"


# ============================================================
# MINIMUM PRICE TESTS
# ============================================================

class TestMinimumPrice:
    """Tests for floor and bonus computation."""

    def test_global_floor_default(self, registered, product_id):
        assert registered.minimum_price(product_id, FARMER) == PRICE_UNIT

    def test_product_floor_above_global(self, registered, product_id):
        registered.set_price_floor(ORACLE, product_id, 130)
        assert registered.minimum_price(product_id, FARMER) == 130

    def test_global_floor_wins_when_higher(self, registered, product_id):
        registered.set_price_floor(ORACLE, product_id, 60)
        assert registered.minimum_price(product_id, FARMER) == PRICE_UNIT

    def test_rating_bonus(self, registered, product_id):
        registered.rate_producer(PROTECTOR, FARMER, 80)

        quote = registered.quote_minimum_price(product_id, FARMER)

        assert quote.base_floor == 100
        assert quote.rating_bonus == 100 * 80 // (MAX_RATING * 10)
        assert quote.minimum_price == 108

    def test_no_bonus_at_half_rating(self, registered, product_id):
        registered.rate_producer(PROTECTOR, FARMER, MAX_RATING // 2)
        assert registered.quote_minimum_price(product_id, FARMER).rating_bonus == 0

    def test_bonus_capped_at_ten_percent(self, registered, product_id):
        registered.rate_producer(PROTECTOR, FARMER, MAX_RATING)
        assert registered.minimum_price(product_id, FARMER) == 110

    def test_unknown_product(self, registered):
        with pytest.raises(ProductNotFoundError):
            registered.minimum_price(99, FARMER)


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidatePrice:
    """Tests for the price validation gate."""

    def test_example_scenario(self, registered, product_id):
        validation = registered.validate_price(PROCESSOR, product_id, 150, FARMER)
        assert validation.validation_id == 1
        assert validation.minimum_price == 100

        with pytest.raises(InsufficientPriceError):
            registered.validate_price(PROCESSOR, product_id, 50, FARMER)

    def test_boundary_is_inclusive(self, registered, product_id):
        registered.set_price_floor(ORACLE, product_id, 120)

        registered.validate_price(PROCESSOR, product_id, 120, FARMER)
        with pytest.raises(InsufficientPriceError) as exc_info:
            registered.validate_price(PROCESSOR, product_id, 119, FARMER)
        assert exc_info.value.minimum_price == 120

    def test_success_records_transaction(self, registered, product_id, events):
        validation = registered.validate_price(PROCESSOR, product_id, 150, FARMER)

        assert registered.get_producer_profile(FARMER).transaction_count == 1
        assert registered.get_producer_transactions(FARMER) == [validation.validation_id]
        assert registered.get_validation(validation.validation_id) == validation
        assert events.last().name == "PriceValidated"

    def test_failure_leaves_state_untouched(self, registered, product_id):
        with pytest.raises(InsufficientPriceError):
            registered.validate_price(PROCESSOR, product_id, 10, FARMER)

        assert registered.get_producer_profile(FARMER).transaction_count == 0
        assert registered.get_producer_transactions(FARMER) == []
        with pytest.raises(RecordNotFoundError):
            registered.get_validation(1)

    def test_unregistered_producer(self, pricing, product_id):
        with pytest.raises(ProducerNotRegisteredError):
            pricing.validate_price(PROCESSOR, product_id, 150, FARMER)

    def test_suspended_producer(self, registered, product_id):
        for _ in range(5):
            registered.rate_producer(PROTECTOR, FARMER, 0)

        with pytest.raises(ProducerNotRegisteredError):
            registered.validate_price(PROCESSOR, product_id, 150, FARMER)

    def test_volatility_against_ledger_price(self, registered, product_id):
        registered.validate_price(PROCESSOR, product_id, 180, FARMER)
        with pytest.raises(PriceTooVolatileError) as exc_info:
            registered.validate_price(PROCESSOR, product_id, 181, FARMER)
        assert exc_info.value.deviation_bp == 2066

    def test_volatility_against_oracle_market_price(self, registered, product_id):
        registered.update_market_price(ORACLE, product_id, 200)

        with pytest.raises(PriceTooVolatileError):
            registered.validate_price(PROCESSOR, product_id, 150, FARMER)
        registered.validate_price(PROCESSOR, product_id, 190, FARMER)

    def test_explicit_market_price_takes_precedence(self, registered, product_id):
        registered.update_market_price(ORACLE, product_id, 200)
        validation = registered.validate_price(
            PROCESSOR, product_id, 150, FARMER, market_price=150
        )
        assert validation.market_price == 150
        assert validation.deviation_bp == 0

    def test_invalid_market_price(self, registered, product_id):
        with pytest.raises(InvalidPriceError):
            registered.validate_price(PROCESSOR, product_id, 150, FARMER, market_price=0)


# ============================================================
# ORACLE AND ADMIN TESTS
# ============================================================

class TestConfiguration:
    """Tests for oracle floors and admin settings."""

    def test_set_price_floor(self, registered, product_id, clock):
        floor = registered.set_price_floor(ORACLE, product_id, 150)

        assert floor.minimum_price == 150
        assert floor.volatility_index == 5000
        assert floor.confidence_score == 10000
        assert floor.updated_at == clock.now()
        assert registered.get_price_floor(product_id) == floor

    def test_floor_requires_oracle(self, registered, product_id):
        with pytest.raises(UnauthorizedError):
            registered.set_price_floor(ADMIN, product_id, 150)

    def test_floor_for_unknown_product(self, registered):
        with pytest.raises(ProductNotFoundError):
            registered.set_price_floor(ORACLE, 99, 150)

    def test_floor_confidence_range(self, registered, product_id):
        with pytest.raises(InvalidConfigurationError):
            registered.set_price_floor(ORACLE, product_id, 150, confidence_score=10001)

    def test_deactivate_floor(self, registered, product_id):
        registered.set_price_floor(ORACLE, product_id, 300)
        registered.deactivate_price_floor(ORACLE, product_id)

        assert not registered.get_price_floor(product_id).is_active
        assert registered.minimum_price(product_id, FARMER) == PRICE_UNIT
        with pytest.raises(StateConflictError):
            registered.deactivate_price_floor(ORACLE, product_id)

    def test_deactivate_missing_floor(self, registered, product_id):
        with pytest.raises(RecordNotFoundError):
            registered.deactivate_price_floor(ORACLE, product_id)

    def test_set_global_floor(self, registered, product_id):
        registered.set_global_floor(ADMIN, 140)

        assert registered.config.global_floor == 140
        assert registered.minimum_price(product_id, FARMER) == 140
        with pytest.raises(UnauthorizedError):
            registered.set_global_floor(ORACLE, 50)

    def test_set_volatility_threshold(self, registered, product_id):
        registered.set_volatility_threshold(ADMIN, 5000)
        registered.validate_price(PROCESSOR, product_id, 220, FARMER)

        with pytest.raises(InvalidConfigurationError):
            registered.set_volatility_threshold(ADMIN, 0)

    def test_deviation_bp(self):
        assert deviation_bp(120, 100) == 2000
        assert deviation_bp(80, 100) == 2000
        with pytest.raises(InvalidPriceError):
            deviation_bp(10, 0)

    def test_export_import_roundtrip(self, registered, pricing, product_id, registry, ledger):
        from fair_pricing import FairPricingEngine

        registered.set_price_floor(ORACLE, product_id, 120)
        registered.validate_price(PROCESSOR, product_id, 150, FARMER)

        restored = FairPricingEngine(registry, ledger)
        restored.import_state(registered.export_state())

        assert restored.get_producer_profile(FARMER) == registered.get_producer_profile(FARMER)
        assert restored.minimum_price(product_id, FARMER) == 120
        second = restored.validate_price(PROCESSOR, product_id, 150, FARMER)
        assert second.validation_id == 2


# ============================================================
# PURGE TESTS
# ============================================================

class TestPurgeProduct:
    """Tests for dropping pricing data of erased products."""

    def test_purge_after_erasure(self, registered, ledger, product_id, events):
        registered.set_price_floor(ORACLE, product_id, 120)
        registered.update_market_price(ORACLE, product_id, 160)
        validation = registered.validate_price(PROCESSOR, product_id, 150, FARMER)
        ledger.erase_product(REGULATOR, product_id)

        assert registered.purge_product(REGULATOR, product_id) == 2

        assert registered.get_price_floor(product_id) is None
        assert registered.get_market_price(product_id) is None
        assert registered.get_validation(validation.validation_id) == validation
        assert events.last().name == "ProductDataPurged"
        assert events.last().payload["records_removed"] == 2

    def test_purge_requires_regulator(self, registered, ledger, product_id):
        registered.set_price_floor(ORACLE, product_id, 120)
        ledger.erase_product(REGULATOR, product_id)

        with pytest.raises(UnauthorizedError):
            registered.purge_product(ORACLE, product_id)
        assert registered.get_price_floor(product_id) is not None

    def test_live_product_is_conflict(self, registered, product_id):
        registered.set_price_floor(ORACLE, product_id, 120)

        with pytest.raises(StateConflictError):
            registered.purge_product(REGULATOR, product_id)
        assert registered.get_price_floor(product_id).minimum_price == 120

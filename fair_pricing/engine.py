"""
Fair Pricing Engine - Main Engine.

============================================================
PURPOSE
============================================================
Protects producers from being underpaid.

- Producer profiles: rating, transactions, penalties
- Oracle price floors and market reference prices
- Price validation: the business-rule gate other systems
  call before accepting a price

============================================================
MINIMUM PRICE
============================================================
    base    = max(product floor (if active), global floor)
    bonus   = base * rating // (MAX_RATING * 10)
              only when rating > MAX_RATING // 2
    minimum = base + bonus

The bonus is at most 10% of the base floor.

============================================================
VALIDATION GATE
============================================================
1. Producer profile must exist and be active
2. proposed >= minimum (equality accepted)
3. |proposed - reference| in bp <= volatility threshold

Reference market price: explicit argument, else the
oracle-reported market price, else the ledger price.

The penalty counter here is independent of the fraud
engine's risk score. They are never merged.

============================================================
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from actor_registry.registry import ActorRegistry
from actor_registry.types import Role, is_null_actor
from core.clock import ClockProtocol
from core.events import EventLog
from core.exceptions import (
    AlreadyRegisteredError,
    InsufficientPriceError,
    InvalidConfigurationError,
    InvalidPriceError,
    InvalidRatingError,
    PriceTooVolatileError,
    ProducerNotRegisteredError,
    RecordNotFoundError,
    StateConflictError,
    ValidationError,
)
from core.guards import OperationGuard
from product_ledger.ledger import ProductLedger

from .config import PricingConfig
from .types import (
    BASIS_POINTS,
    DEFAULT_RATING,
    LOW_RATING_CUTOFF,
    MAX_RATING,
    PENALTY_THRESHOLD,
    MarketPrice,
    MinimumPriceQuote,
    PriceValidation,
    PricingState,
    ProducerProfile,
    ProductPriceFloor,
)


logger = logging.getLogger(__name__)


def deviation_bp(price: int, reference: int) -> int:
    """Absolute deviation of ``price`` from ``reference`` in basis points."""
    if reference <= 0:
        raise InvalidPriceError(reference, field="reference_price")
    return abs(price - reference) * BASIS_POINTS // reference


class FairPricingEngine:
    """
    Producer protection and minimum price enforcement.

    Reads product state from the ledger and never mutates it.
    """

    def __init__(
        self,
        registry: ActorRegistry,
        ledger: ProductLedger,
        config: Optional[PricingConfig] = None,
        clock: Optional[ClockProtocol] = None,
        events: Optional[EventLog] = None,
    ):
        self._registry = registry
        self._policy = registry.policy
        self._ledger = ledger
        self._config = config or PricingConfig()
        self._guard = OperationGuard(
            "fair_pricing",
            breaker=registry.guard.breaker,
            clock=clock or registry.guard.clock,
        )
        self._events = events or registry.events

        self._profiles: Dict[str, ProducerProfile] = {}
        self._floors: Dict[int, ProductPriceFloor] = {}
        self._market_prices: Dict[int, MarketPrice] = {}
        self._validations: Dict[int, PriceValidation] = {}
        self._producer_transactions: Dict[str, List[int]] = {}
        self._next_validation_id = 1

        logger.info(f"FairPricingEngine initialized: {self._config.to_dict()}")

    @property
    def config(self) -> PricingConfig:
        return self._config

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    # --------------------------------------------------------
    # PRODUCER PROFILES
    # --------------------------------------------------------

    def register_producer(self, caller: str, actor: str) -> ProducerProfile:
        """
        Create a producer profile or reactivate a suspended one.

        Reactivation resets the penalty counter and keeps the
        rating history.
        """
        with self._guard.mutation("register_producer", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "register producers")
            )
            if is_null_actor(actor):
                raise ValidationError(
                    "Cannot register the null identity", field="actor", actual=actor
                )

            profile = self._profiles.get(actor)
            if profile is not None and profile.is_active:
                raise AlreadyRegisteredError(actor)

            if profile is None:
                profile = ProducerProfile(actor=actor, registered_at=op.now)
                self._profiles[actor] = profile
                self._producer_transactions.setdefault(actor, [])
                event = "ProducerRegistered"
            else:
                profile.is_active = True
                profile.penalty_count = 0
                profile.registered_at = op.now
                event = "ProducerReactivated"

            self._events.emit(event, op.now, actor=actor, rating=profile.rating, by=caller)
            return profile.copy()

    def rate_producer(self, caller: str, actor: str, score: int, reason: str = "") -> int:
        """
        Apply one rating to a producer.

        Returns:
            The producer's new average rating
        """
        with self._guard.mutation("rate_producer", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.PRODUCER_PROTECTION, "rate producers")
            )
            if not 0 <= score <= MAX_RATING:
                raise InvalidRatingError(score, MAX_RATING)
            profile = self._profiles.get(actor)
            if profile is None:
                raise ProducerNotRegisteredError(actor)

            profile.rating_sum += score
            profile.rating_count += 1

            suspended = False
            if score < LOW_RATING_CUTOFF:
                profile.penalty_count += 1
                if profile.is_active and profile.penalty_count >= PENALTY_THRESHOLD:
                    profile.is_active = False
                    suspended = True

            self._events.emit(
                "ProducerRated",
                op.now,
                actor=actor,
                score=score,
                rating=profile.rating,
                penalty_count=profile.penalty_count,
                reason=reason,
                by=caller,
            )
            if suspended:
                logger.warning(
                    f"Producer {actor} suspended after {profile.penalty_count} penalties"
                )
                self._events.emit(
                    "ProducerSuspended",
                    op.now,
                    actor=actor,
                    penalty_count=profile.penalty_count,
                )
            return profile.rating

    # --------------------------------------------------------
    # MINIMUM PRICE
    # --------------------------------------------------------

    def quote_minimum_price(self, product_id: int, actor: str) -> MinimumPriceQuote:
        self._ledger.get_product(product_id)

        floor = self._floors.get(product_id)
        product_floor = floor.minimum_price if floor is not None and floor.is_active else None
        global_floor = self._config.global_floor
        base = max(product_floor or 0, global_floor)

        rating = self.get_producer_rating(actor)
        bonus = 0
        if rating > MAX_RATING // 2:
            bonus = base * rating // (MAX_RATING * 10)

        return MinimumPriceQuote(
            product_id=product_id,
            actor=actor,
            base_floor=base,
            rating=rating,
            rating_bonus=bonus,
            minimum_price=base + bonus,
            product_floor=product_floor,
            global_floor=global_floor,
        )

    def minimum_price(
        self,
        product_id: int,
        actor: str,
        market_price: Optional[int] = None,
    ) -> int:
        """
        Minimum acceptable price for ``actor`` selling ``product_id``.

        ``market_price`` does not change the floor; it is accepted
        so callers can pass the same arguments as to validate_price.
        """
        quote = self.quote_minimum_price(product_id, actor)
        logger.debug(f"Minimum price quote: {quote.to_dict()} (market={market_price})")
        return quote.minimum_price

    def validate_price(
        self,
        caller: str,
        product_id: int,
        proposed_price: int,
        actor: str,
        market_price: Optional[int] = None,
    ) -> PriceValidation:
        """
        Validate a proposed transaction price for a producer.

        Raises:
            ProducerNotRegisteredError: unknown or suspended producer
            InsufficientPriceError: proposed price below the minimum
            PriceTooVolatileError: too far from the market reference
        """
        with self._guard.mutation("validate_price", caller) as op:
            product = self._ledger.get_product(product_id)
            profile = self._profiles.get(actor)
            if profile is None:
                raise ProducerNotRegisteredError(actor)
            if not profile.is_active:
                raise ProducerNotRegisteredError(actor, reason="inactive")
            if market_price is not None and market_price <= 0:
                raise InvalidPriceError(market_price, field="market_price")

            minimum = self.quote_minimum_price(product_id, actor).minimum_price
            if proposed_price < minimum:
                logger.warning(
                    f"Price {proposed_price} for product {product_id} below minimum {minimum}"
                )
                raise InsufficientPriceError(product_id, proposed_price, minimum)

            reference = self._reference_price(product_id, product.price, market_price)
            deviation = deviation_bp(proposed_price, reference)
            threshold = self._config.volatility_threshold_bp
            if deviation > threshold:
                logger.warning(
                    f"Price {proposed_price} for product {product_id} "
                    f"deviates {deviation}bp from {reference}"
                )
                raise PriceTooVolatileError(
                    product_id, proposed_price, reference, deviation, threshold
                )

            validation = PriceValidation(
                validation_id=self._next_validation_id,
                product_id=product_id,
                actor=actor,
                proposed_price=proposed_price,
                minimum_price=minimum,
                market_price=reference,
                deviation_bp=deviation,
                validated_at=op.now,
                validated_by=caller,
            )
            self._next_validation_id += 1
            self._validations[validation.validation_id] = validation
            profile.transaction_count += 1
            self._producer_transactions.setdefault(actor, []).append(validation.validation_id)

            self._events.emit(
                "PriceValidated",
                op.now,
                validation_id=validation.validation_id,
                product_id=product_id,
                actor=actor,
                price=proposed_price,
                minimum_price=minimum,
            )
            return validation

    # --------------------------------------------------------
    # ORACLE OPERATIONS
    # --------------------------------------------------------

    def set_price_floor(
        self,
        caller: str,
        product_id: int,
        price: int,
        confidence_score: Optional[int] = None,
    ) -> ProductPriceFloor:
        """Overwrite a product's floor and recompute its volatility index."""
        if confidence_score is None:
            confidence_score = self._config.default_confidence_score

        with self._guard.mutation("set_price_floor", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.PRICE_ORACLE, "set price floors")
            )
            self._ledger.get_product(product_id)
            if price <= 0:
                raise InvalidPriceError(price)
            if not 0 <= confidence_score <= BASIS_POINTS:
                raise InvalidConfigurationError(
                    "confidence_score", confidence_score, f"must be within 0..{BASIS_POINTS}"
                )

            floor = ProductPriceFloor(
                product_id=product_id,
                minimum_price=price,
                updated_at=op.now,
                volatility_index=deviation_bp(price, self._config.global_floor),
                confidence_score=confidence_score,
            )
            self._floors[product_id] = floor

            self._events.emit(
                "PriceFloorSet",
                op.now,
                product_id=product_id,
                minimum_price=price,
                volatility_index=floor.volatility_index,
                by=caller,
            )
            return floor

    def deactivate_price_floor(self, caller: str, product_id: int) -> None:
        with self._guard.mutation("deactivate_price_floor", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.PRICE_ORACLE, "deactivate price floors")
            )
            floor = self._floors.get(product_id)
            if floor is None:
                raise RecordNotFoundError("price_floor", product_id)
            if not floor.is_active:
                raise StateConflictError(
                    f"Price floor for product {product_id} is already inactive",
                    context={"product_id": product_id},
                )

            self._floors[product_id] = replace(floor, is_active=False, updated_at=op.now)
            self._events.emit("PriceFloorDeactivated", op.now, product_id=product_id, by=caller)

    def update_market_price(self, caller: str, product_id: int, price: int) -> MarketPrice:
        with self._guard.mutation("update_market_price", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.PRICE_ORACLE, "report market prices")
            )
            self._ledger.get_product(product_id)
            if price <= 0:
                raise InvalidPriceError(price, field="market_price")

            market = MarketPrice(
                product_id=product_id,
                price=price,
                reported_at=op.now,
                reported_by=caller,
            )
            self._market_prices[product_id] = market
            self._events.emit("MarketPriceUpdated", op.now, product_id=product_id, price=price)
            return market

    def purge_product(self, caller: str, product_id: int) -> int:
        """Drop the floor and market price of an erased product. Validations stay."""
        with self._guard.mutation("purge_product", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.REGULATOR, "purge product data")
            )
            if self._ledger.exists(product_id):
                raise StateConflictError(
                    f"Product {product_id} is still on the ledger",
                    context={"product_id": product_id},
                )

            removed = 0
            if self._floors.pop(product_id, None) is not None:
                removed += 1
            if self._market_prices.pop(product_id, None) is not None:
                removed += 1

            logger.info(f"Purged pricing data for erased product {product_id}: {removed} records")
            self._events.emit(
                "ProductDataPurged",
                op.now,
                product_id=product_id,
                scope="fair_pricing",
                records_removed=removed,
                by=caller,
            )
            return removed

    # --------------------------------------------------------
    # ADMIN CONFIGURATION
    # --------------------------------------------------------

    def set_global_floor(self, caller: str, price: int) -> None:
        with self._guard.mutation("set_global_floor", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "set the global floor")
            )
            if price <= 0:
                raise InvalidPriceError(price, field="global_floor")

            previous = self._config.global_floor
            self._config = replace(self._config, global_floor=price)
            self._events.emit(
                "GlobalFloorUpdated", op.now, previous=previous, global_floor=price, by=caller
            )

    def set_volatility_threshold(self, caller: str, threshold_bp: int) -> None:
        with self._guard.mutation("set_volatility_threshold", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.ADMIN, "set the volatility threshold")
            )
            if not 0 < threshold_bp <= BASIS_POINTS:
                raise InvalidConfigurationError(
                    "volatility_threshold_bp", threshold_bp, f"must be within 1..{BASIS_POINTS}"
                )

            previous = self._config.volatility_threshold_bp
            self._config = replace(self._config, volatility_threshold_bp=threshold_bp)
            self._events.emit(
                "VolatilityThresholdUpdated",
                op.now,
                previous=previous,
                threshold_bp=threshold_bp,
                by=caller,
            )

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def is_registered(self, actor: str) -> bool:
        profile = self._profiles.get(actor)
        return profile is not None and profile.is_active

    def get_producer_profile(self, actor: str) -> ProducerProfile:
        profile = self._profiles.get(actor)
        if profile is None:
            raise ProducerNotRegisteredError(actor)
        return profile.copy()

    def get_producer_rating(self, actor: str) -> int:
        """Current rating, or the default rating for unknown producers."""
        profile = self._profiles.get(actor)
        return profile.rating if profile is not None else DEFAULT_RATING

    def get_producer_transactions(self, actor: str) -> List[int]:
        return list(self._producer_transactions.get(actor, ()))

    def get_price_floor(self, product_id: int) -> Optional[ProductPriceFloor]:
        return self._floors.get(product_id)

    def get_market_price(self, product_id: int) -> Optional[MarketPrice]:
        return self._market_prices.get(product_id)

    def get_validation(self, validation_id: int) -> PriceValidation:
        validation = self._validations.get(validation_id)
        if validation is None:
            raise RecordNotFoundError("price_validation", validation_id)
        return validation

    # --------------------------------------------------------
    # PERSISTENCE SUPPORT
    # --------------------------------------------------------

    def export_state(self) -> PricingState:
        return PricingState(
            profiles=[p.copy() for p in self._profiles.values()],
            floors=list(self._floors.values()),
            market_prices=list(self._market_prices.values()),
            validations=[self._validations[v] for v in sorted(self._validations)],
            producer_transactions={
                a: list(ids) for a, ids in self._producer_transactions.items()
            },
            global_floor=self._config.global_floor,
            volatility_threshold_bp=self._config.volatility_threshold_bp,
        )

    def import_state(self, state: PricingState) -> None:
        self._profiles = {p.actor: p.copy() for p in state.profiles}
        self._floors = {f.product_id: f for f in state.floors}
        self._market_prices = {m.product_id: m for m in state.market_prices}
        self._validations = {v.validation_id: v for v in state.validations}
        self._producer_transactions = {
            a: list(ids) for a, ids in state.producer_transactions.items()
        }
        self._next_validation_id = max(self._validations, default=0) + 1
        self._config = replace(
            self._config,
            global_floor=state.global_floor,
            volatility_threshold_bp=state.volatility_threshold_bp,
        )

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _reference_price(
        self,
        product_id: int,
        ledger_price: int,
        market_price: Optional[int],
    ) -> int:
        if market_price is not None:
            return market_price
        market = self._market_prices.get(product_id)
        if market is not None:
            return market.price
        return ledger_price

"""
Fair Pricing Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for producer protection and minimum-price
enforcement.

============================================================
UNITS
============================================================
- Prices are integers in minor units (PRICE_UNIT per unit)
- Ratings are integers on a 0..MAX_RATING scale
- Volatility, confidence and deviations are basis points
  (10000 = 100%)

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# ============================================================
# CONSTANTS
# ============================================================

PRICE_UNIT = 100
"""Minor units per whole price unit."""

BASIS_POINTS = 10000

MAX_RATING = 100
DEFAULT_RATING = MAX_RATING // 2

PENALTY_THRESHOLD = 5
"""Penalties at which a producer profile is suspended."""

LOW_RATING_CUTOFF = MAX_RATING // 4
"""Scores strictly below this count as a penalty."""


# ============================================================
# PRODUCER PROFILE
# ============================================================


@dataclass
class ProducerProfile:
    """
    Protection profile of one producer.

    The rating is the truncated average of every score ever
    applied. Until the first score, the default mid-scale
    rating is reported.
    """

    actor: str
    registered_at: datetime
    rating_sum: int = 0
    rating_count: int = 0
    transaction_count: int = 0
    penalty_count: int = 0
    is_active: bool = True

    @property
    def rating(self) -> int:
        if self.rating_count == 0:
            return DEFAULT_RATING
        return self.rating_sum // self.rating_count

    def copy(self) -> "ProducerProfile":
        return ProducerProfile(
            actor=self.actor,
            registered_at=self.registered_at,
            rating_sum=self.rating_sum,
            rating_count=self.rating_count,
            transaction_count=self.transaction_count,
            penalty_count=self.penalty_count,
            is_active=self.is_active,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor": self.actor,
            "registered_at": self.registered_at.isoformat(),
            "rating": self.rating,
            "rating_sum": self.rating_sum,
            "rating_count": self.rating_count,
            "transaction_count": self.transaction_count,
            "penalty_count": self.penalty_count,
            "is_active": self.is_active,
        }


# ============================================================
# PRICE FLOORS AND MARKET PRICES
# ============================================================


@dataclass(frozen=True)
class ProductPriceFloor:
    """Oracle-set minimum support price for one product."""

    product_id: int
    minimum_price: int
    updated_at: datetime
    volatility_index: int
    """Deviation of the floor from the global floor (bp)."""

    confidence_score: int = BASIS_POINTS
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "minimum_price": self.minimum_price,
            "updated_at": self.updated_at.isoformat(),
            "volatility_index": self.volatility_index,
            "confidence_score": self.confidence_score,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class MarketPrice:
    """Oracle-reported reference price for one product."""

    product_id: int
    price: int
    reported_at: datetime
    reported_by: str


# ============================================================
# VALIDATION OUTPUTS
# ============================================================


@dataclass(frozen=True)
class MinimumPriceQuote:
    """Breakdown of a minimum price computation."""

    product_id: int
    actor: str
    base_floor: int
    """max(product floor, global floor)."""

    rating: int
    rating_bonus: int
    minimum_price: int
    product_floor: Optional[int] = None
    global_floor: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "actor": self.actor,
            "base_floor": self.base_floor,
            "product_floor": self.product_floor,
            "global_floor": self.global_floor,
            "rating": self.rating,
            "rating_bonus": self.rating_bonus,
            "minimum_price": self.minimum_price,
        }


@dataclass(frozen=True)
class PriceValidation:
    """A successful price validation."""

    validation_id: int
    product_id: int
    actor: str
    proposed_price: int
    minimum_price: int
    market_price: int
    deviation_bp: int
    validated_at: datetime
    validated_by: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validation_id": self.validation_id,
            "product_id": self.product_id,
            "actor": self.actor,
            "proposed_price": self.proposed_price,
            "minimum_price": self.minimum_price,
            "market_price": self.market_price,
            "deviation_bp": self.deviation_bp,
            "validated_at": self.validated_at.isoformat(),
            "validated_by": self.validated_by,
        }


@dataclass
class PricingState:
    """Exported engine state used by the repository."""

    profiles: List[ProducerProfile] = field(default_factory=list)
    floors: List[ProductPriceFloor] = field(default_factory=list)
    market_prices: List[MarketPrice] = field(default_factory=list)
    validations: List[PriceValidation] = field(default_factory=list)
    producer_transactions: Dict[str, List[int]] = field(default_factory=dict)
    global_floor: int = PRICE_UNIT
    volatility_threshold_bp: int = 2000

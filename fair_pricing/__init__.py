"""
Fair Pricing Engine - Package.

============================================================
PURPOSE
============================================================
Minimum-support price computation with rating-based
bonuses, market-deviation caps and producer protection
profiles.

============================================================
USAGE
============================================================
    from fair_pricing import FairPricingEngine

    pricing = FairPricingEngine(registry, ledger)
    pricing.register_producer(admin, farmer)
    pricing.validate_price(buyer, product_id, 150, farmer)

============================================================
"""

from .types import (
    BASIS_POINTS,
    DEFAULT_RATING,
    LOW_RATING_CUTOFF,
    MAX_RATING,
    PENALTY_THRESHOLD,
    PRICE_UNIT,
    MarketPrice,
    MinimumPriceQuote,
    PriceValidation,
    PricingState,
    ProducerProfile,
    ProductPriceFloor,
)
from .config import PricingConfig, get_default_config
from .engine import FairPricingEngine, deviation_bp


__all__ = [
    "BASIS_POINTS",
    "DEFAULT_RATING",
    "LOW_RATING_CUTOFF",
    "MAX_RATING",
    "PENALTY_THRESHOLD",
    "PRICE_UNIT",
    "MarketPrice",
    "MinimumPriceQuote",
    "PriceValidation",
    "PricingState",
    "ProducerProfile",
    "ProductPriceFloor",
    "PricingConfig",
    "get_default_config",
    "FairPricingEngine",
    "deviation_bp",
]

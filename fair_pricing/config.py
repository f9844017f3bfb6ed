"""
Fair Pricing Engine - Configuration.

============================================================
DEFAULTS
============================================================
- global_floor: 1 unit (PRICE_UNIT minor units)
- volatility_threshold_bp: 2000 (20% max deviation from
  the reference market price)
- default_confidence_score: 10000 for oracle floors

Runtime changes go through the admin-gated setters on the
engine, which swap the frozen config with
``dataclasses.replace``.

============================================================
"""

from dataclasses import dataclass
from typing import Any, Dict

from .types import BASIS_POINTS, PRICE_UNIT


@dataclass(frozen=True)
class PricingConfig:
    """Configuration for the fair pricing engine."""

    global_floor: int = PRICE_UNIT
    volatility_threshold_bp: int = 2000
    default_confidence_score: int = BASIS_POINTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_floor": self.global_floor,
            "volatility_threshold_bp": self.volatility_threshold_bp,
            "default_confidence_score": self.default_confidence_score,
        }


def get_default_config() -> PricingConfig:
    return PricingConfig()

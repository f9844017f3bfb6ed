"""
Product Ledger - Configuration.

============================================================
BOUNDS
============================================================
- max_content_hashes: documents attached at creation and
  quality content hashes, each list capped to bound
  storage cost
- max_quality_score: upper bound for quality readings

============================================================
STAGE MONOTONICITY
============================================================
Role eligibility is evaluated against the destination
stage only. With ``enforce_monotonic_stages`` enabled,
non-regulators additionally cannot move a product to an
earlier stage. Regulators may always correct a record.

============================================================
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration for the product ledger."""

    max_content_hashes: int = 50
    max_quality_score: int = 1000
    enforce_monotonic_stages: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_content_hashes": self.max_content_hashes,
            "max_quality_score": self.max_quality_score,
            "enforce_monotonic_stages": self.enforce_monotonic_stages,
        }


def get_default_config() -> LedgerConfig:
    return LedgerConfig()


def get_compatibility_config() -> LedgerConfig:
    """Looser rules that allow backward stage moves for any eligible role."""
    return LedgerConfig(enforce_monotonic_stages=False)

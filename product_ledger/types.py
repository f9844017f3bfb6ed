"""
Product Ledger - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for product records, the lifecycle stage
enumeration and the append-only quality history.

============================================================
LIFECYCLE STAGES
============================================================
    PLANTED(0) → GROWING(1) → HARVESTED(2) → PROCESSED(3)
    → PACKAGED(4) → IN_TRANSIT(5) → DISTRIBUTED(6)
    → RETAIL(7) → SOLD(8)

PLANTED is the initial stage. SOLD is conventionally final.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional


NULL_PRODUCT_ID = 0
"""Sentinel id meaning "does not exist"."""


# ============================================================
# ENUMS
# ============================================================

class ProductStage(IntEnum):
    """Totally ordered lifecycle stage of a tracked product."""

    PLANTED = 0
    GROWING = 1
    HARVESTED = 2
    PROCESSED = 3
    PACKAGED = 4
    IN_TRANSIT = 5
    DISTRIBUTED = 6
    RETAIL = 7
    SOLD = 8

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def previous(self) -> Optional["ProductStage"]:
        """Stage before this one, None for PLANTED."""
        if self == ProductStage.PLANTED:
            return None
        return ProductStage(self.value - 1)

    def is_final(self) -> bool:
        return self == ProductStage.SOLD


# ============================================================
# RECORDS
# ============================================================

@dataclass
class ProductRecord:
    """
    Authoritative product state owned by the ledger.

    ``timestamp`` is the creation time, then the time of the
    last stage or ownership mutation.
    """

    product_id: int
    timestamp: datetime
    quantity: int
    price: int
    owner: str
    stage: ProductStage
    location_hash: str
    content_hashes: List[str] = field(default_factory=list)

    def snapshot(self) -> "ProductSnapshot":
        return ProductSnapshot(
            product_id=self.product_id,
            timestamp=self.timestamp,
            quantity=self.quantity,
            price=self.price,
            owner=self.owner,
            stage=self.stage,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "timestamp": self.timestamp.isoformat(),
            "quantity": self.quantity,
            "price": self.price,
            "owner": self.owner,
            "stage": self.stage.name,
            "location_hash": self.location_hash,
            "content_hashes": list(self.content_hashes),
        }


@dataclass(frozen=True)
class ProductSnapshot:
    """Read contract consumed by the pricing and fraud engines."""

    product_id: int
    timestamp: datetime
    quantity: int
    price: int
    owner: str
    stage: ProductStage


@dataclass(frozen=True)
class QualityObservation:
    """One immutable entry of a product's quality history."""

    timestamp: datetime
    temperature: int
    humidity: int
    quality_score: int
    certification_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
            "humidity": self.humidity,
            "quality_score": self.quality_score,
            "certification_hash": self.certification_hash,
        }


@dataclass(frozen=True)
class QualityHistory:
    """Quality read contract: observations plus attached content hashes."""

    observations: List[QualityObservation]
    content_hashes: List[str]

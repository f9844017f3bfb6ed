"""
Product Ledger - Persistence Layer.

============================================================
MODELS
============================================================
1. ProductRow: one row per live product (erased rows are
   deleted, never soft-deleted)
2. QualityObservationRow: append-only history (child of
   ProductRow, cascades on erasure)
3. ActorProductRow: per-actor product index

Content hash lists are stored as JSON arrays on the
product row; they are opaque and never queried.

============================================================
"""

from datetime import datetime
from typing import List

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    BigInteger,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database.engine import Base


class ProductRow(Base):
    """Persisted ProductRecord."""

    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    price: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Price in minor units",
    )
    owner: Mapped[str] = mapped_column(String(128), nullable=False)
    stage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="ProductStage value 0-8",
    )
    location_hash: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    content_hashes: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    quality_content_hashes: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    observations: Mapped[List["QualityObservationRow"]] = relationship(
        "QualityObservationRow",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="QualityObservationRow.position",
    )

    __table_args__ = (
        Index("ix_products_owner", "owner"),
        Index("ix_products_stage", "stage"),
    )

    def __repr__(self) -> str:
        return (
            f"ProductRow(id={self.product_id}, stage={self.stage}, "
            f"owner={self.owner}, price={self.price})"
        )


class QualityObservationRow(Base):
    """Persisted QualityObservation."""

    __tablename__ = "quality_observations"

    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.product_id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    temperature: Mapped[int] = mapped_column(Integer, nullable=False)
    humidity: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_score: Mapped[int] = mapped_column(Integer, nullable=False)
    certification_hash: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    product: Mapped[ProductRow] = relationship("ProductRow", back_populates="observations")


class ActorProductRow(Base):
    """Per-actor product index entry."""

    __tablename__ = "actor_products"

    actor: Mapped[str] = mapped_column(String(128), primary_key=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.product_id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

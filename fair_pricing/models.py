"""
Fair Pricing Engine - Persistence Layer.

============================================================
MODELS
============================================================
1. ProducerProfileRow: keyed by actor identity
2. PriceFloorRow: keyed by product id
3. MarketPriceRow: keyed by product id
4. PriceValidationRow: keyed by validation id (monotonic)

Engine-level settings (global floor, volatility threshold)
are stored as named counters in ``state_counters``.

============================================================
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class ProducerProfileRow(Base):
    """Persisted ProducerProfile."""

    __tablename__ = "producer_profiles"

    actor: Mapped[str] = mapped_column(String(128), primary_key=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rating_sum: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"ProducerProfileRow(actor={self.actor}, active={self.is_active}, "
            f"penalties={self.penalty_count})"
        )


class PriceFloorRow(Base):
    """Persisted ProductPriceFloor."""

    __tablename__ = "price_floors"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    minimum_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    volatility_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Deviation from the global floor in basis points",
    )
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class MarketPriceRow(Base):
    """Persisted oracle market price."""

    __tablename__ = "market_prices"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reported_by: Mapped[str] = mapped_column(String(128), nullable=False)


class PriceValidationRow(Base):
    """Persisted PriceValidation."""

    __tablename__ = "price_validations"

    validation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    proposed_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    minimum_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    market_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deviation_bp: Mapped[int] = mapped_column(Integer, nullable=False)
    validated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    validated_by: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        Index("ix_price_validations_actor", "actor", "validation_id"),
        Index("ix_price_validations_product", "product_id"),
    )

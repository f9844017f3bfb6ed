"""
Fraud Detection Engine - Persistence Layer.

============================================================
MODELS
============================================================
1. PriceSampleRow: price history window entries, ordered
   by position within the product's window
2. PriceAnomalyRow: keyed by anomaly id
3. TimeViolationRow: keyed by violation id
4. FraudPatternRow: keyed by actor identity

Records are never deleted by the engine; resolution only
flips the resolved flag.

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class PriceSampleRow(Base):
    """One entry of a product's price history window."""

    __tablename__ = "price_history"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stage: Mapped[int] = mapped_column(Integer, nullable=False)


class PriceAnomalyRow(Base):
    """Persisted PriceAnomalyRecord."""

    __tablename__ = "price_anomalies"

    anomaly_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deviation_bp: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)
    anomaly_type: Mapped[str] = mapped_column(String(16), nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    resolved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_price_anomalies_unresolved", "resolved", "anomaly_id"),
        Index("ix_price_anomalies_actor", "actor"),
    )


class TimeViolationRow(Base):
    """Persisted TimeViolationRecord."""

    __tablename__ = "time_violations"

    violation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    violated_stage: Mapped[int] = mapped_column(Integer, nullable=False)
    expected_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    resolved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class FraudPatternRow(Base):
    """Persisted ActorFraudPattern."""

    __tablename__ = "fraud_patterns"

    actor: Mapped[str] = mapped_column(String(128), primary_key=True)
    violation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_suspicious_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_blacklisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    first_violation_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_violation_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    blacklisted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_fraud_patterns_blacklisted", "is_blacklisted"),
    )

    def __repr__(self) -> str:
        return (
            f"FraudPatternRow(actor={self.actor}, violations={self.violation_count}, "
            f"risk={self.risk_score}, blacklisted={self.is_blacklisted})"
        )

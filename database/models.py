"""
Database Models - Shared Tables.

Monotonic counters (product ids, validation ids, anomaly and
violation ids) and the circuit breaker flag, keyed by name.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, Session, mapped_column

from .engine import Base


class CounterRow(Base):
    """Named monotonic counter."""

    __tablename__ = "state_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"CounterRow(name={self.name}, value={self.value})"


class SystemFlagRow(Base):
    """Global pause flag."""

    __tablename__ = "system_flags"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def write_counter(session: Session, name: str, value: int) -> None:
    session.merge(CounterRow(name=name, value=value))


def read_counter(session: Session, name: str, default: int = 0) -> int:
    row = session.get(CounterRow, name)
    return row.value if row is not None else default

"""
Actor Registry - Persistence Layer.

One row per (actor, role) grant.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class RoleGrantRow(Base):
    """A role held by an identity."""

    __tablename__ = "role_grants"

    actor: Mapped[str] = mapped_column(String(128), primary_key=True)
    role: Mapped[str] = mapped_column(String(32), primary_key=True)
    granted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=datetime.utcnow,
    )

    __table_args__ = (
        Index("ix_role_grants_role", "role"),
    )

    def __repr__(self) -> str:
        return f"RoleGrantRow(actor={self.actor}, role={self.role})"

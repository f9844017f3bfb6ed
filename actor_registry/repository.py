"""
Actor Registry - Repository.

Snapshot/restore of role grants and the global pause flag.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from core.guards import CircuitBreaker
from database.models import SystemFlagRow

from .models import RoleGrantRow
from .registry import ActorRegistry


PAUSE_FLAG = "paused"


class RegistryRepository:
    """Persists the registry into the shared state store."""

    def __init__(self, session: Session):
        self._session = session

    def save(self, registry: ActorRegistry, breaker: Optional[CircuitBreaker] = None) -> int:
        """
        Replace stored grants with the registry's current grants.

        Returns:
            Number of grant rows written
        """
        self._session.execute(delete(RoleGrantRow))
        count = 0
        for actor, roles in registry.export_grants().items():
            for role in roles:
                self._session.add(RoleGrantRow(actor=actor, role=role))
                count += 1

        if breaker is not None:
            self._session.merge(SystemFlagRow(
                name=PAUSE_FLAG,
                enabled=breaker.is_paused,
                updated_at=breaker.paused_at,
            ))

        self._session.flush()
        return count

    def load_grants(self) -> Dict[str, List[str]]:
        grants: Dict[str, List[str]] = defaultdict(list)
        for row in self._session.execute(select(RoleGrantRow)).scalars():
            grants[row.actor].append(row.role)
        return dict(grants)

    def load_into(self, registry: ActorRegistry, breaker: Optional[CircuitBreaker] = None) -> None:
        registry.import_grants(self.load_grants())
        if breaker is not None:
            flag = self._session.get(SystemFlagRow, PAUSE_FLAG)
            if flag is not None:
                breaker.set_paused(
                    flag.enabled,
                    ensure_utc(flag.updated_at) if flag.updated_at else None,
                )

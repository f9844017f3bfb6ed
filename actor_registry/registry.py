"""
Actor Registry - Role Store.

============================================================
PURPOSE
============================================================
Tracks which identities hold which roles. Pure
authorization lookup; no business logic.

The bootstrap admin receives ADMIN on construction. All
further grants and revocations are admin-only.

============================================================
"""

import logging
from typing import Dict, FrozenSet, List, Optional, Set

from core.events import EventLog
from core.exceptions import RoleConflictError, UnauthorizedError
from core.guards import OperationGuard

from .policy import AuthorizationPolicy
from .types import Role, is_null_actor


logger = logging.getLogger(__name__)


class ActorRegistry:
    """In-memory role store keyed by identity."""

    def __init__(
        self,
        admin: str,
        guard: Optional[OperationGuard] = None,
        events: Optional[EventLog] = None,
    ):
        if is_null_actor(admin):
            raise UnauthorizedError(admin, "bootstrap registry", "null identity")

        self._roles: Dict[str, Set[Role]] = {admin: {Role.ADMIN}}
        self._guard = guard or OperationGuard("actor_registry")
        self._events = events or EventLog()
        self.policy = AuthorizationPolicy(self)

        logger.info(f"ActorRegistry initialized with admin {admin}")

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    @property
    def events(self) -> EventLog:
        return self._events

    # --------------------------------------------------------
    # READ CONTRACT
    # --------------------------------------------------------

    def has_role(self, actor: str, role: Role) -> bool:
        return role in self._roles.get(actor, ())

    def roles_of(self, actor: str) -> FrozenSet[Role]:
        return frozenset(self._roles.get(actor, ()))

    def holders_of(self, role: Role) -> List[str]:
        return sorted(actor for actor, roles in self._roles.items() if role in roles)

    # --------------------------------------------------------
    # ADMIN OPERATIONS
    # --------------------------------------------------------

    def grant_role(self, caller: str, actor: str, role: Role) -> None:
        with self._guard.mutation("grant_role", caller) as op:
            self.policy.require(self.policy.role_required(caller, Role.ADMIN, "grant roles"))
            if is_null_actor(actor):
                raise RoleConflictError(actor, role, "cannot grant to the null identity")
            if self.has_role(actor, role):
                raise RoleConflictError(actor, role, "already granted")

            self._roles.setdefault(actor, set()).add(role)
            self._events.emit("RoleGranted", op.now, actor=actor, role=role.value, by=caller)

    def revoke_role(self, caller: str, actor: str, role: Role) -> None:
        with self._guard.mutation("revoke_role", caller) as op:
            self.policy.require(self.policy.role_required(caller, Role.ADMIN, "revoke roles"))
            if not self.has_role(actor, role):
                raise RoleConflictError(actor, role, "not held")
            if role == Role.ADMIN and actor == caller and len(self.holders_of(Role.ADMIN)) == 1:
                raise RoleConflictError(actor, role, "cannot revoke the last admin")

            self._roles[actor].discard(role)
            if not self._roles[actor]:
                del self._roles[actor]
            self._events.emit("RoleRevoked", op.now, actor=actor, role=role.value, by=caller)

    # --------------------------------------------------------
    # PERSISTENCE SUPPORT
    # --------------------------------------------------------

    def export_grants(self) -> Dict[str, List[str]]:
        return {actor: sorted(r.value for r in roles) for actor, roles in self._roles.items()}

    def import_grants(self, grants: Dict[str, List[str]]) -> None:
        """Replace the role table with previously exported grants."""
        self._roles = {actor: {Role(r) for r in roles} for actor, roles in grants.items() if roles}

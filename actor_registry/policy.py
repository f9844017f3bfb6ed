"""
Actor Registry - Authorization Policy.

============================================================
PURPOSE
============================================================
Central policy-check interface invoked at the top of every
mutating operation.

Each check returns an AuthorizationDecision; ``require``
converts a denial into UnauthorizedError. Components never
inline role conditionals.

============================================================
"""

import logging
from typing import FrozenSet, Iterable, Protocol

from core.exceptions import UnauthorizedError

from .types import AuthorizationDecision, Role


logger = logging.getLogger(__name__)


class RoleSource(Protocol):
    """Read contract consumed by the policy ("has role X")."""

    def has_role(self, actor: str, role: Role) -> bool:
        ...

    def roles_of(self, actor: str) -> FrozenSet[Role]:
        ...


class AuthorizationPolicy:
    """Builds and enforces authorization decisions."""

    def __init__(self, roles: RoleSource):
        self._roles = roles

    def roles_of(self, actor: str) -> FrozenSet[Role]:
        return self._roles.roles_of(actor)

    def role_required(self, actor: str, role: Role, action: str) -> AuthorizationDecision:
        if self._roles.has_role(actor, role):
            return AuthorizationDecision(True, actor, action, f"holds {role.value}")
        return AuthorizationDecision(False, actor, action, f"requires {role.value}")

    def any_role_required(
        self,
        actor: str,
        roles: Iterable[Role],
        action: str,
    ) -> AuthorizationDecision:
        wanted = frozenset(roles)
        held = self._roles.roles_of(actor) & wanted
        if held:
            names = ",".join(sorted(r.value for r in held))
            return AuthorizationDecision(True, actor, action, f"holds {names}")
        names = "|".join(sorted(r.value for r in wanted))
        return AuthorizationDecision(False, actor, action, f"requires one of {names}")

    def owner_required(self, actor: str, owner: str, action: str) -> AuthorizationDecision:
        if actor == owner:
            return AuthorizationDecision(True, actor, action, "is current owner")
        return AuthorizationDecision(False, actor, action, "not the current owner")

    def require(self, decision: AuthorizationDecision) -> AuthorizationDecision:
        """Raise UnauthorizedError when the decision denies the action."""
        if not decision.allowed:
            logger.warning(f"Denied {decision.action} for {decision.actor}: {decision.reason}")
            raise UnauthorizedError(decision.actor, decision.action, decision.reason)
        return decision

"""
Actor Registry - Package.

============================================================
PURPOSE
============================================================
Tracks which identities hold which roles (producer,
intermediate handler, final handler, regulator, auditor,
plus the administrative roles) and turns role/ownership
checks into structured authorization decisions.

============================================================
USAGE
============================================================
    from actor_registry import ActorRegistry, Role

    registry = ActorRegistry(admin="0xadmin")
    registry.grant_role("0xadmin", "0xfarm", Role.PRODUCER)

    decision = registry.policy.role_required("0xfarm", Role.PRODUCER, "create product")
    assert decision.allowed

============================================================
"""

from .types import NULL_ACTOR, is_null_actor, Role, AuthorizationDecision
from .policy import AuthorizationPolicy, RoleSource
from .registry import ActorRegistry
from .control import SystemControl


__all__ = [
    "NULL_ACTOR",
    "is_null_actor",
    "Role",
    "AuthorizationDecision",
    "AuthorizationPolicy",
    "RoleSource",
    "ActorRegistry",
    "SystemControl",
]

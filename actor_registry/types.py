"""
Actor Registry - Type Definitions.

============================================================
PURPOSE
============================================================
Roles held by supply-chain identities and the structured
authorization decision returned by the policy layer.

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet


NULL_ACTOR = "0x" + "0" * 40
"""Sentinel identity; never a valid owner or role holder."""


def is_null_actor(actor: str) -> bool:
    return not actor or actor.lower() == NULL_ACTOR


class Role(str, Enum):
    """Roles an identity can hold."""

    ADMIN = "admin"
    PRODUCER = "producer"
    INTERMEDIATE_HANDLER = "intermediate_handler"
    FINAL_HANDLER = "final_handler"
    REGULATOR = "regulator"
    AUDITOR = "auditor"
    PRICE_ORACLE = "price_oracle"
    PRODUCER_PROTECTION = "producer_protection"
    FRAUD_ANALYST = "fraud_analyst"

    @classmethod
    def supply_chain_roles(cls) -> FrozenSet["Role"]:
        """Roles that take part in the physical custody chain."""
        return frozenset({
            cls.PRODUCER,
            cls.INTERMEDIATE_HANDLER,
            cls.FINAL_HANDLER,
            cls.REGULATOR,
            cls.AUDITOR,
        })


@dataclass(frozen=True)
class AuthorizationDecision:
    """
    Outcome of a policy check.

    Returned instead of raising so that rules can be tested
    in isolation; ``AuthorizationPolicy.require`` turns a
    denial into ``UnauthorizedError``.
    """

    allowed: bool
    actor: str
    action: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "actor": self.actor,
            "action": self.action,
            "reason": self.reason,
        }

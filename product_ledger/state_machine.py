"""
Product Ledger - Stage State Machine.

============================================================
PURPOSE
============================================================
Decides who may move a product to a lifecycle stage.

ROLE RULES (evaluated against the destination stage):

    PLANTED, GROWING, HARVESTED   → PRODUCER
    PROCESSED, PACKAGED           → PRODUCER | INTERMEDIATE_HANDLER
    IN_TRANSIT, DISTRIBUTED       → INTERMEDIATE_HANDLER
    RETAIL, SOLD                  → FINAL_HANDLER

    REGULATOR may always transition.

INVARIANTS:
- The rule table is static and testable without a ledger
- Staying in the same stage is always a valid transition
- Backward moves are rejected for non-regulators when
  monotonic progression is enforced

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Tuple

from actor_registry.types import Role

from .types import ProductStage


logger = logging.getLogger(__name__)


# ============================================================
# STAGE ROLE RULES
# ============================================================

STAGE_ROLE_RULES: Dict[ProductStage, FrozenSet[Role]] = {
    ProductStage.PLANTED: frozenset({Role.PRODUCER}),
    ProductStage.GROWING: frozenset({Role.PRODUCER}),
    ProductStage.HARVESTED: frozenset({Role.PRODUCER}),
    ProductStage.PROCESSED: frozenset({Role.PRODUCER, Role.INTERMEDIATE_HANDLER}),
    ProductStage.PACKAGED: frozenset({Role.PRODUCER, Role.INTERMEDIATE_HANDLER}),
    ProductStage.IN_TRANSIT: frozenset({Role.INTERMEDIATE_HANDLER}),
    ProductStage.DISTRIBUTED: frozenset({Role.INTERMEDIATE_HANDLER}),
    ProductStage.RETAIL: frozenset({Role.FINAL_HANDLER}),
    ProductStage.SOLD: frozenset({Role.FINAL_HANDLER}),
}

OVERRIDE_ROLE = Role.REGULATOR


def eligible_roles(stage: ProductStage) -> FrozenSet[Role]:
    """Roles allowed to move a product into ``stage`` (regulator included)."""
    return STAGE_ROLE_RULES[stage] | {OVERRIDE_ROLE}


def can_set_stage(roles: Iterable[Role], stage: ProductStage) -> bool:
    """
    Pure (role set, target stage) -> bool rule.

    Args:
        roles: Roles held by the caller
        stage: Destination stage
    """
    held = frozenset(roles)
    if OVERRIDE_ROLE in held:
        return True
    return bool(held & STAGE_ROLE_RULES[stage])


# ============================================================
# TRANSITION GUARD
# ============================================================

@dataclass(frozen=True)
class StageTransition:
    """A requested move from one stage to another."""

    product_id: int
    from_stage: ProductStage
    to_stage: ProductStage

    @property
    def is_backward(self) -> bool:
        return self.to_stage < self.from_stage

    @property
    def is_noop(self) -> bool:
        return self.to_stage == self.from_stage


class StageTransitionGuard:
    """Ordering checks, separate from role eligibility."""

    def __init__(self, enforce_monotonic: bool = True):
        self._enforce_monotonic = enforce_monotonic

    def can_transition(
        self,
        transition: StageTransition,
        roles: Iterable[Role],
    ) -> Tuple[bool, str]:
        """
        Check ordering of a transition.

        Returns:
            Tuple of (allowed, reason)
        """
        if transition.is_noop:
            return True, "Same stage"

        if not transition.is_backward:
            return True, "Forward transition"

        if not self._enforce_monotonic:
            return True, "Backward transition permitted by configuration"

        if OVERRIDE_ROLE in frozenset(roles):
            logger.warning(
                f"Regulator correction on product {transition.product_id}: "
                f"{transition.from_stage.name} -> {transition.to_stage.name}"
            )
            return True, "Regulator correction"

        return False, (
            f"Invalid backward transition: "
            f"{transition.from_stage.name} -> {transition.to_stage.name}"
        )

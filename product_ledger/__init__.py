"""
Product Ledger - Package.

============================================================
PURPOSE
============================================================
Owns product records and their lifecycle stage, owner,
quantity, price and attached content hashes; owns the
append-only quality history. It is the authoritative source
of product state read by the pricing and fraud engines.

============================================================
USAGE
============================================================
    from actor_registry import ActorRegistry, Role
    from product_ledger import ProductLedger, ProductStage

    registry = ActorRegistry(admin="0xadmin")
    registry.grant_role("0xadmin", "0xfarm", Role.PRODUCER)

    ledger = ProductLedger(registry)
    pid = ledger.create_product("0xfarm", 100, 150, "0xloc", ["0xdoc"])
    ledger.advance_stage("0xfarm", pid, ProductStage.GROWING)

============================================================
"""

from .types import (
    NULL_PRODUCT_ID,
    ProductStage,
    ProductRecord,
    ProductSnapshot,
    QualityObservation,
    QualityHistory,
)
from .config import LedgerConfig, get_default_config, get_compatibility_config
from .state_machine import (
    STAGE_ROLE_RULES,
    StageTransition,
    StageTransitionGuard,
    can_set_stage,
    eligible_roles,
)
from .ledger import ProductLedger


__all__ = [
    "NULL_PRODUCT_ID",
    "ProductStage",
    "ProductRecord",
    "ProductSnapshot",
    "QualityObservation",
    "QualityHistory",
    "LedgerConfig",
    "get_default_config",
    "get_compatibility_config",
    "STAGE_ROLE_RULES",
    "StageTransition",
    "StageTransitionGuard",
    "can_set_stage",
    "eligible_roles",
    "ProductLedger",
]

"""
Product Ledger - Main Service.

============================================================
PURPOSE
============================================================
Single source of truth for product state.

Owns:
1. Product records (stage, owner, quantity, price, hashes)
2. The sequential product id counter
3. Append-only quality observation history
4. The per-actor product index

============================================================
OPERATION SHAPE
============================================================
Every mutating operation:
1. Enters the operation guard (pause + re-entrancy + clock)
2. Runs the authorization policy check
3. Validates every precondition
4. Mutates state
5. Emits one notification

Nothing is mutated before step 4, so any error leaves the
ledger untouched.

============================================================
"""

import logging
from typing import Dict, List, Optional, Sequence

from actor_registry.registry import ActorRegistry
from actor_registry.types import AuthorizationDecision, Role, is_null_actor
from core.clock import ClockProtocol
from core.events import EventLog
from core.exceptions import (
    ExceedsMaxContentHashesError,
    InvalidPriceError,
    InvalidQualityScoreError,
    InvalidQuantityError,
    InvalidStageTransitionError,
    ProductNotFoundError,
    ValidationError,
)
from core.guards import OperationGuard

from .config import LedgerConfig
from .state_machine import StageTransition, StageTransitionGuard, eligible_roles
from .types import (
    NULL_PRODUCT_ID,
    ProductRecord,
    ProductSnapshot,
    ProductStage,
    QualityHistory,
    QualityObservation,
)


logger = logging.getLogger(__name__)


class ProductLedger:
    """
    Product records and the stage state machine.

    Usage:
        ledger = ProductLedger(registry)
        product_id = ledger.create_product(farmer, 100, 150, loc_hash, [doc_hash])
        ledger.advance_stage(farmer, product_id, ProductStage.GROWING)
    """

    def __init__(
        self,
        registry: ActorRegistry,
        config: Optional[LedgerConfig] = None,
        clock: Optional[ClockProtocol] = None,
        events: Optional[EventLog] = None,
    ):
        self._registry = registry
        self._policy = registry.policy
        self._config = config or LedgerConfig()
        self._guard = OperationGuard(
            "product_ledger",
            breaker=registry.guard.breaker,
            clock=clock or registry.guard.clock,
        )
        self._events = events or registry.events
        self._transition_guard = StageTransitionGuard(self._config.enforce_monotonic_stages)

        self._next_id = 1
        self._products: Dict[int, ProductRecord] = {}
        self._quality: Dict[int, List[QualityObservation]] = {}
        self._quality_hashes: Dict[int, List[str]] = {}
        self._actor_products: Dict[str, List[int]] = {}

        logger.info("ProductLedger initialized")

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    # --------------------------------------------------------
    # MUTATIONS
    # --------------------------------------------------------

    def create_product(
        self,
        caller: str,
        quantity: int,
        price: int,
        location_hash: str,
        content_hashes: Sequence[str] = (),
    ) -> int:
        """
        Register a new product at stage PLANTED owned by the caller.

        Returns:
            The newly allocated product id
        """
        with self._guard.mutation("create_product", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.PRODUCER, "create products")
            )
            if quantity <= 0:
                raise InvalidQuantityError(quantity)
            if price <= 0:
                raise InvalidPriceError(price)
            if len(content_hashes) > self._config.max_content_hashes:
                raise ExceedsMaxContentHashesError(
                    len(content_hashes), self._config.max_content_hashes
                )

            product_id = self._next_id
            self._next_id += 1

            self._products[product_id] = ProductRecord(
                product_id=product_id,
                timestamp=op.now,
                quantity=quantity,
                price=price,
                owner=caller,
                stage=ProductStage.PLANTED,
                location_hash=location_hash,
                content_hashes=list(content_hashes),
            )
            self._quality[product_id] = []
            self._quality_hashes[product_id] = []
            self._index(caller, product_id)

            self._events.emit(
                "ProductCreated",
                op.now,
                product_id=product_id,
                owner=caller,
                quantity=quantity,
                price=price,
            )
            return product_id

    def advance_stage(self, caller: str, product_id: int, new_stage: ProductStage) -> None:
        try:
            new_stage = ProductStage(new_stage)
        except ValueError:
            raise ValidationError(
                f"Unknown stage {new_stage}", field="new_stage", actual=new_stage
            ) from None
        with self._guard.mutation("advance_stage", caller) as op:
            record = self._require(product_id)
            self._policy.require(
                self._policy.any_role_required(
                    caller, eligible_roles(new_stage), f"move product to {new_stage.name}"
                )
            )
            roles = self._policy.roles_of(caller)

            transition = StageTransition(product_id, record.stage, new_stage)
            allowed, reason = self._transition_guard.can_transition(transition, roles)
            if not allowed:
                logger.warning(f"Rejected stage change on {product_id}: {reason}")
                raise InvalidStageTransitionError(product_id, record.stage.name, new_stage.name)

            previous = record.stage
            record.stage = new_stage
            record.timestamp = op.now

            self._events.emit(
                "StageUpdated",
                op.now,
                product_id=product_id,
                from_stage=previous.name,
                to_stage=new_stage.name,
                by=caller,
            )

    def record_quality(
        self,
        caller: str,
        product_id: int,
        temperature: int,
        humidity: int,
        quality_score: int,
        certification_hash: str,
        content_hash: str,
    ) -> int:
        """
        Append one quality observation.

        Returns:
            Number of observations recorded for the product
        """
        with self._guard.mutation("record_quality", caller) as op:
            self._policy.require(
                self._policy.any_role_required(
                    caller, Role.supply_chain_roles(), "record quality data"
                )
            )
            self._require(product_id)
            if not 0 <= quality_score <= self._config.max_quality_score:
                raise InvalidQualityScoreError(quality_score, self._config.max_quality_score)

            hashes = self._quality_hashes[product_id]
            if len(hashes) >= self._config.max_content_hashes:
                raise ExceedsMaxContentHashesError(
                    len(hashes) + 1,
                    self._config.max_content_hashes,
                    field="quality_content_hashes",
                )

            self._quality[product_id].append(QualityObservation(
                timestamp=op.now,
                temperature=temperature,
                humidity=humidity,
                quality_score=quality_score,
                certification_hash=certification_hash,
            ))
            hashes.append(content_hash)

            self._events.emit(
                "QualityRecorded",
                op.now,
                product_id=product_id,
                quality_score=quality_score,
                by=caller,
            )
            return len(self._quality[product_id])

    def transfer_ownership(
        self,
        caller: str,
        product_id: int,
        new_owner: str,
        new_price: int,
    ) -> None:
        with self._guard.mutation("transfer_ownership", caller) as op:
            record = self._require(product_id)
            self._policy.require(
                self._policy.owner_required(caller, record.owner, "transfer ownership")
            )
            if is_null_actor(new_owner):
                self._policy.require(self._null_owner_denial(caller))
            if new_price <= 0:
                raise InvalidPriceError(new_price, field="new_price")

            previous_owner = record.owner
            record.owner = new_owner
            record.price = new_price
            record.timestamp = op.now
            self._index(new_owner, product_id)

            self._events.emit(
                "OwnershipTransferred",
                op.now,
                product_id=product_id,
                from_owner=previous_owner,
                to_owner=new_owner,
                price=new_price,
            )

    def erase_product(self, caller: str, product_id: int) -> None:
        """Irreversibly remove a record and all dependent history."""
        with self._guard.mutation("erase_product", caller) as op:
            self._policy.require(
                self._policy.role_required(caller, Role.REGULATOR, "erase products")
            )
            self._require(product_id)

            del self._products[product_id]
            self._quality.pop(product_id, None)
            self._quality_hashes.pop(product_id, None)
            for actor in list(self._actor_products):
                ids = self._actor_products[actor]
                if product_id in ids:
                    ids.remove(product_id)
                if not ids:
                    del self._actor_products[actor]

            self._events.emit("ProductErased", op.now, product_id=product_id, by=caller)

    # --------------------------------------------------------
    # READ CONTRACT
    # --------------------------------------------------------

    def get_product(self, product_id: int) -> ProductSnapshot:
        return self._require(product_id).snapshot()

    def get_product_record(self, product_id: int) -> ProductRecord:
        """Full record copy, including location and content hashes."""
        record = self._require(product_id)
        return ProductRecord(
            product_id=record.product_id,
            timestamp=record.timestamp,
            quantity=record.quantity,
            price=record.price,
            owner=record.owner,
            stage=record.stage,
            location_hash=record.location_hash,
            content_hashes=list(record.content_hashes),
        )

    def get_quality_history(self, product_id: int) -> QualityHistory:
        self._require(product_id)
        return QualityHistory(
            observations=list(self._quality[product_id]),
            content_hashes=list(self._quality_hashes[product_id]),
        )

    def get_content_hashes(self, product_id: int) -> List[str]:
        return list(self._require(product_id).content_hashes)

    def get_owned_products(self, actor: str) -> List[int]:
        """Ids of existing products the actor created or received."""
        return list(self._actor_products.get(actor, ()))

    def exists(self, product_id: int) -> bool:
        return product_id in self._products

    @property
    def product_count(self) -> int:
        """Number of ids allocated so far (erased ids included)."""
        return self._next_id - 1

    # --------------------------------------------------------
    # PERSISTENCE SUPPORT
    # --------------------------------------------------------

    def export_state(self) -> dict:
        return {
            "next_id": self._next_id,
            "products": [self.get_product_record(pid) for pid in sorted(self._products)],
            "quality": {pid: list(obs) for pid, obs in self._quality.items()},
            "quality_hashes": {pid: list(h) for pid, h in self._quality_hashes.items()},
            "actor_products": {a: list(ids) for a, ids in self._actor_products.items()},
        }

    def import_state(self, state: dict) -> None:
        """Replace ledger state with a previously exported snapshot."""
        self._next_id = state["next_id"]
        self._products = {r.product_id: r for r in state["products"]}
        self._quality = {pid: list(obs) for pid, obs in state["quality"].items()}
        self._quality_hashes = {pid: list(h) for pid, h in state["quality_hashes"].items()}
        self._actor_products = {a: list(ids) for a, ids in state["actor_products"].items()}
        for pid in self._products:
            self._quality.setdefault(pid, [])
            self._quality_hashes.setdefault(pid, [])

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _require(self, product_id: int) -> ProductRecord:
        record = self._products.get(product_id)
        if product_id == NULL_PRODUCT_ID or record is None:
            raise ProductNotFoundError(product_id)
        return record

    def _index(self, actor: str, product_id: int) -> None:
        ids = self._actor_products.setdefault(actor, [])
        if product_id not in ids:
            ids.append(product_id)

    def _null_owner_denial(self, caller: str) -> AuthorizationDecision:
        return AuthorizationDecision(
            False, caller, "transfer ownership", "new owner is the null identity"
        )

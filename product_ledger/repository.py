"""
Product Ledger - Repository.

============================================================
PURPOSE
============================================================
Writes the ledger's state into the shared store and reads
it back.

- save: full snapshot inside the caller's transaction
- load_into: restores a ledger (e.g. at process start)
- get_product_row: direct lookup for indexers

Call inside ``database.transaction_scope`` so a failed
snapshot never leaves a partial write behind.

============================================================
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from database.models import read_counter, write_counter

from .ledger import ProductLedger
from .models import ActorProductRow, ProductRow, QualityObservationRow
from .types import ProductRecord, ProductStage, QualityObservation


logger = logging.getLogger(__name__)

PRODUCT_COUNTER = "product_ledger.next_id"


class LedgerRepository:
    """Persistence operations for the product ledger."""

    def __init__(self, session: Session):
        self._session = session

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    def save(self, ledger: ProductLedger) -> int:
        """
        Persist a full snapshot of the ledger.

        Returns:
            Number of product rows written
        """
        state = ledger.export_state()

        self._session.execute(delete(ActorProductRow))
        self._session.execute(delete(QualityObservationRow))
        self._session.execute(delete(ProductRow))

        for record in state["products"]:
            row = ProductRow(
                product_id=record.product_id,
                timestamp=record.timestamp,
                quantity=record.quantity,
                price=record.price,
                owner=record.owner,
                stage=int(record.stage),
                location_hash=record.location_hash,
                content_hashes=list(record.content_hashes),
                quality_content_hashes=state["quality_hashes"].get(record.product_id, []),
            )
            for position, obs in enumerate(state["quality"].get(record.product_id, [])):
                row.observations.append(QualityObservationRow(
                    position=position,
                    timestamp=obs.timestamp,
                    temperature=obs.temperature,
                    humidity=obs.humidity,
                    quality_score=obs.quality_score,
                    certification_hash=obs.certification_hash,
                ))
            self._session.add(row)

        self._session.flush()

        for actor, ids in state["actor_products"].items():
            for position, product_id in enumerate(ids):
                self._session.add(ActorProductRow(
                    actor=actor,
                    product_id=product_id,
                    position=position,
                ))

        write_counter(self._session, PRODUCT_COUNTER, state["next_id"])
        self._session.flush()

        logger.info(f"Ledger snapshot saved: {len(state['products'])} products")
        return len(state["products"])

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def get_product_row(self, product_id: int) -> Optional[ProductRow]:
        return self._session.get(ProductRow, product_id)

    def load_into(self, ledger: ProductLedger) -> int:
        """
        Restore a ledger from the store.

        Returns:
            Number of products loaded
        """
        rows = self._session.execute(
            select(ProductRow).order_by(ProductRow.product_id)
        ).scalars().all()

        products: List[ProductRecord] = []
        quality: Dict[int, List[QualityObservation]] = {}
        quality_hashes: Dict[int, List[str]] = {}

        for row in rows:
            products.append(ProductRecord(
                product_id=row.product_id,
                timestamp=ensure_utc(row.timestamp),
                quantity=row.quantity,
                price=row.price,
                owner=row.owner,
                stage=ProductStage(row.stage),
                location_hash=row.location_hash,
                content_hashes=list(row.content_hashes or []),
            ))
            quality[row.product_id] = [
                QualityObservation(
                    timestamp=ensure_utc(obs.timestamp),
                    temperature=obs.temperature,
                    humidity=obs.humidity,
                    quality_score=obs.quality_score,
                    certification_hash=obs.certification_hash,
                )
                for obs in row.observations
            ]
            quality_hashes[row.product_id] = list(row.quality_content_hashes or [])

        index: Dict[str, List[int]] = defaultdict(list)
        index_rows = self._session.execute(
            select(ActorProductRow).order_by(ActorProductRow.actor, ActorProductRow.position)
        ).scalars()
        for entry in index_rows:
            index[entry.actor].append(entry.product_id)

        ledger.import_state({
            "next_id": read_counter(self._session, PRODUCT_COUNTER, default=len(products) + 1),
            "products": products,
            "quality": quality,
            "quality_hashes": quality_hashes,
            "actor_products": dict(index),
        })

        logger.info(f"Ledger snapshot loaded: {len(products)} products")
        return len(products)

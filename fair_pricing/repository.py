"""
Fair Pricing Engine - Repository.

Snapshot persistence for producer profiles, floors, market
prices and validations. Producer transaction indexes are
rebuilt from the validation rows on load.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from database.models import read_counter, write_counter

from .engine import FairPricingEngine
from .models import MarketPriceRow, PriceFloorRow, PriceValidationRow, ProducerProfileRow
from .types import (
    MarketPrice,
    PriceValidation,
    PricingState,
    ProducerProfile,
    ProductPriceFloor,
)


logger = logging.getLogger(__name__)

GLOBAL_FLOOR_COUNTER = "fair_pricing.global_floor"
VOLATILITY_COUNTER = "fair_pricing.volatility_threshold_bp"


class PricingRepository:
    """Persistence operations for the fair pricing engine."""

    def __init__(self, session: Session):
        self._session = session

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    def save(self, engine: FairPricingEngine) -> None:
        state = engine.export_state()

        for model in (ProducerProfileRow, PriceFloorRow, MarketPriceRow, PriceValidationRow):
            self._session.execute(delete(model))

        self._session.add_all(
            ProducerProfileRow(
                actor=p.actor,
                registered_at=p.registered_at,
                rating_sum=p.rating_sum,
                rating_count=p.rating_count,
                transaction_count=p.transaction_count,
                penalty_count=p.penalty_count,
                is_active=p.is_active,
            )
            for p in state.profiles
        )
        self._session.add_all(
            PriceFloorRow(
                product_id=f.product_id,
                minimum_price=f.minimum_price,
                updated_at=f.updated_at,
                volatility_index=f.volatility_index,
                confidence_score=f.confidence_score,
                is_active=f.is_active,
            )
            for f in state.floors
        )
        self._session.add_all(
            MarketPriceRow(
                product_id=m.product_id,
                price=m.price,
                reported_at=m.reported_at,
                reported_by=m.reported_by,
            )
            for m in state.market_prices
        )
        self._session.add_all(
            PriceValidationRow(**v.__dict__) for v in state.validations
        )

        write_counter(self._session, GLOBAL_FLOOR_COUNTER, state.global_floor)
        write_counter(self._session, VOLATILITY_COUNTER, state.volatility_threshold_bp)
        self._session.flush()

        logger.info(
            f"Pricing snapshot saved: {len(state.profiles)} profiles, "
            f"{len(state.validations)} validations"
        )

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def load_into(self, engine: FairPricingEngine) -> PricingState:
        profiles = [
            ProducerProfile(
                actor=row.actor,
                registered_at=ensure_utc(row.registered_at),
                rating_sum=row.rating_sum,
                rating_count=row.rating_count,
                transaction_count=row.transaction_count,
                penalty_count=row.penalty_count,
                is_active=row.is_active,
            )
            for row in self._session.execute(select(ProducerProfileRow)).scalars()
        ]
        floors = [
            ProductPriceFloor(
                product_id=row.product_id,
                minimum_price=row.minimum_price,
                updated_at=ensure_utc(row.updated_at),
                volatility_index=row.volatility_index,
                confidence_score=row.confidence_score,
                is_active=row.is_active,
            )
            for row in self._session.execute(select(PriceFloorRow)).scalars()
        ]
        market_prices = [
            MarketPrice(
                product_id=row.product_id,
                price=row.price,
                reported_at=ensure_utc(row.reported_at),
                reported_by=row.reported_by,
            )
            for row in self._session.execute(select(MarketPriceRow)).scalars()
        ]

        validations: List[PriceValidation] = []
        transactions: Dict[str, List[int]] = defaultdict(list)
        rows = self._session.execute(
            select(PriceValidationRow).order_by(PriceValidationRow.validation_id)
        ).scalars()
        for row in rows:
            validations.append(PriceValidation(
                validation_id=row.validation_id,
                product_id=row.product_id,
                actor=row.actor,
                proposed_price=row.proposed_price,
                minimum_price=row.minimum_price,
                market_price=row.market_price,
                deviation_bp=row.deviation_bp,
                validated_at=ensure_utc(row.validated_at),
                validated_by=row.validated_by,
            ))
            transactions[row.actor].append(row.validation_id)
        for profile in profiles:
            transactions.setdefault(profile.actor, [])

        state = PricingState(
            profiles=profiles,
            floors=floors,
            market_prices=market_prices,
            validations=validations,
            producer_transactions=dict(transactions),
            global_floor=read_counter(
                self._session, GLOBAL_FLOOR_COUNTER, default=engine.config.global_floor
            ),
            volatility_threshold_bp=read_counter(
                self._session, VOLATILITY_COUNTER, default=engine.config.volatility_threshold_bp
            ),
        )
        engine.import_state(state)

        logger.info(f"Pricing snapshot loaded: {len(profiles)} profiles")
        return state

"""
Shared fixtures.

Every component is wired the way a deployment wires them:
one registry (breaker, clock, event log) shared by the
ledger and both engines.
"""

import pytest

from actor_registry import ActorRegistry, Role, SystemControl
from core.clock import MockClock
from core.guards import OperationGuard
from fair_pricing import FairPricingEngine
from fraud_detection import FraudDetectionEngine
from product_ledger import ProductLedger
from tests.helpers import (
    ADMIN,
    ANALYST,
    AUDITOR,
    FARMER,
    ORACLE,
    PROCESSOR,
    PROTECTOR,
    REGULATOR,
    RETAILER,
    START,
)


@pytest.fixture
def clock():
    return MockClock(START)


@pytest.fixture
def registry(clock):
    registry = ActorRegistry(admin=ADMIN, guard=OperationGuard("actor_registry", clock=clock))
    for actor, role in [
        (FARMER, Role.PRODUCER),
        (PROCESSOR, Role.INTERMEDIATE_HANDLER),
        (RETAILER, Role.FINAL_HANDLER),
        (REGULATOR, Role.REGULATOR),
        (AUDITOR, Role.AUDITOR),
        (ORACLE, Role.PRICE_ORACLE),
        (PROTECTOR, Role.PRODUCER_PROTECTION),
        (ANALYST, Role.FRAUD_ANALYST),
    ]:
        registry.grant_role(ADMIN, actor, role)
    return registry


@pytest.fixture
def control(registry):
    return SystemControl(registry, registry.guard.breaker)


@pytest.fixture
def events(registry):
    return registry.events


@pytest.fixture
def ledger(registry):
    return ProductLedger(registry)


@pytest.fixture
def pricing(registry, ledger):
    return FairPricingEngine(registry, ledger)


@pytest.fixture
def fraud(registry, ledger):
    return FraudDetectionEngine(registry, ledger)


@pytest.fixture
def product_id(ledger):
    """One product created by FARMER: quantity 100, price 150."""
    return ledger.create_product(FARMER, 100, 150, "0xloc", ["0xdoc1"])

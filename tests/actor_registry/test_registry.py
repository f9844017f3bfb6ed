"""
Tests for the Actor Registry.

============================================================
PURPOSE
============================================================
1. Role grants and revocations
2. Authorization decisions
3. Global pause control

============================================================
"""

import pytest

from actor_registry import NULL_ACTOR, ActorRegistry, AuthorizationPolicy, Role
from core.exceptions import (
    ErrorCategory,
    RoleConflictError,
    StateConflictError,
    SystemPausedError,
    UnauthorizedError,
)
from tests.helpers import ADMIN, FARMER, PROCESSOR, REGULATOR, STRANGER


# ============================================================
# ROLE GRANT TESTS
# ============================================================

class TestRoleGrants:
    """Tests for granting and revoking roles."""

    def test_bootstrap_admin(self):
        registry = ActorRegistry(admin=ADMIN)
        assert registry.has_role(ADMIN, Role.ADMIN)
        assert registry.holders_of(Role.ADMIN) == [ADMIN]

    def test_null_admin_rejected(self):
        with pytest.raises(UnauthorizedError):
            ActorRegistry(admin=NULL_ACTOR)

    def test_grant_role(self, registry, events):
        registry.grant_role(ADMIN, STRANGER, Role.AUDITOR)

        assert registry.has_role(STRANGER, Role.AUDITOR)
        assert Role.AUDITOR in registry.roles_of(STRANGER)
        assert events.last().name == "RoleGranted"
        assert events.last().payload["role"] == "auditor"

    def test_grant_requires_admin(self, registry):
        with pytest.raises(UnauthorizedError) as exc_info:
            registry.grant_role(FARMER, STRANGER, Role.PRODUCER)
        assert exc_info.value.category == ErrorCategory.AUTHORIZATION
        assert not registry.has_role(STRANGER, Role.PRODUCER)

    def test_duplicate_grant_is_conflict(self, registry):
        with pytest.raises(RoleConflictError):
            registry.grant_role(ADMIN, FARMER, Role.PRODUCER)

    def test_grant_to_null_identity_rejected(self, registry):
        with pytest.raises(RoleConflictError):
            registry.grant_role(ADMIN, NULL_ACTOR, Role.PRODUCER)

    def test_revoke_role(self, registry):
        registry.revoke_role(ADMIN, FARMER, Role.PRODUCER)
        assert not registry.has_role(FARMER, Role.PRODUCER)
        assert registry.roles_of(FARMER) == frozenset()

    def test_revoke_missing_role_is_conflict(self, registry):
        with pytest.raises(RoleConflictError):
            registry.revoke_role(ADMIN, FARMER, Role.REGULATOR)

    def test_cannot_revoke_last_admin(self, registry):
        with pytest.raises(RoleConflictError):
            registry.revoke_role(ADMIN, ADMIN, Role.ADMIN)

    def test_export_import_grants(self, registry):
        grants = registry.export_grants()

        restored = ActorRegistry(admin=ADMIN)
        restored.import_grants(grants)

        assert restored.roles_of(PROCESSOR) == frozenset({Role.INTERMEDIATE_HANDLER})
        assert restored.export_grants() == grants


# ============================================================
# AUTHORIZATION POLICY TESTS
# ============================================================

class TestAuthorizationPolicy:
    """Tests for structured authorization decisions."""

    def test_role_required(self, registry):
        policy = AuthorizationPolicy(registry)

        allowed = policy.role_required(FARMER, Role.PRODUCER, "create products")
        denied = policy.role_required(STRANGER, Role.PRODUCER, "create products")

        assert allowed.allowed
        assert not denied.allowed
        assert denied.actor == STRANGER
        assert denied.action == "create products"
        assert "producer" in denied.reason

    def test_any_role_required(self, registry):
        policy = registry.policy
        roles = {Role.PRODUCER, Role.INTERMEDIATE_HANDLER}

        assert policy.any_role_required(PROCESSOR, roles, "package").allowed
        assert not policy.any_role_required(REGULATOR, roles, "package").allowed

    def test_owner_required(self, registry):
        policy = registry.policy
        assert policy.owner_required(FARMER, FARMER, "transfer").allowed
        assert not policy.owner_required(STRANGER, FARMER, "transfer").allowed

    def test_require_raises_on_denial(self, registry):
        policy = registry.policy
        decision = policy.role_required(STRANGER, Role.ADMIN, "pause")

        with pytest.raises(UnauthorizedError) as exc_info:
            policy.require(decision)
        assert exc_info.value.context["actor"] == STRANGER

    def test_require_returns_allowed_decision(self, registry):
        decision = registry.policy.role_required(ADMIN, Role.ADMIN, "pause")
        assert registry.policy.require(decision) is decision


# ============================================================
# SYSTEM CONTROL TESTS
# ============================================================

class TestSystemControl:
    """Tests for the global pause flag."""

    def test_pause_blocks_mutations(self, registry, control, ledger):
        control.pause(ADMIN)

        assert control.is_paused
        with pytest.raises(SystemPausedError):
            registry.grant_role(ADMIN, STRANGER, Role.AUDITOR)
        with pytest.raises(SystemPausedError):
            ledger.create_product(FARMER, 1, 1, "0xloc")

    def test_reads_available_while_paused(self, registry, control, ledger, product_id):
        control.pause(ADMIN)

        assert registry.has_role(FARMER, Role.PRODUCER)
        assert ledger.get_product(product_id).owner == FARMER

    def test_unpause_restores_mutations(self, registry, control):
        control.pause(ADMIN)
        control.unpause(ADMIN)

        registry.grant_role(ADMIN, STRANGER, Role.AUDITOR)
        assert registry.has_role(STRANGER, Role.AUDITOR)

    def test_pause_requires_admin(self, control):
        with pytest.raises(UnauthorizedError):
            control.pause(FARMER)
        assert not control.is_paused

    def test_double_pause_is_conflict(self, control):
        control.pause(ADMIN)
        with pytest.raises(StateConflictError):
            control.pause(ADMIN)

    def test_unpause_when_running_is_conflict(self, control):
        with pytest.raises(StateConflictError):
            control.unpause(ADMIN)

    def test_pause_emits_notifications(self, control, events):
        control.pause(ADMIN)
        control.unpause(ADMIN)
        assert [n.name for n in events.all()[-2:]] == ["SystemPaused", "SystemUnpaused"]

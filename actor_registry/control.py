"""
Actor Registry - System Control.

Admin-controlled global pause. While paused every mutating
entry point of every component sharing the circuit breaker
fails with SystemPausedError; reads remain available.
"""

import logging

from core.exceptions import StateConflictError
from core.guards import CircuitBreaker

from .registry import ActorRegistry
from .types import Role


logger = logging.getLogger(__name__)


class SystemControl:
    """Pause / unpause entry points."""

    def __init__(self, registry: ActorRegistry, breaker: CircuitBreaker):
        self._registry = registry
        self._breaker = breaker

    @property
    def is_paused(self) -> bool:
        return self._breaker.is_paused

    def pause(self, caller: str) -> None:
        policy = self._registry.policy
        with self._registry.guard.mutation("pause", caller, respect_pause=False) as op:
            policy.require(policy.role_required(caller, Role.ADMIN, "pause the system"))
            if self._breaker.is_paused:
                raise StateConflictError("System is already paused", context={"by": caller})
            self._breaker.set_paused(True, op.now)
            self._registry.events.emit("SystemPaused", op.now, by=caller)

    def unpause(self, caller: str) -> None:
        policy = self._registry.policy
        with self._registry.guard.mutation("unpause", caller, respect_pause=False) as op:
            policy.require(policy.role_required(caller, Role.ADMIN, "unpause the system"))
            if not self._breaker.is_paused:
                raise StateConflictError("System is not paused", context={"by": caller})
            self._breaker.set_paused(False)
            self._registry.events.emit("SystemUnpaused", op.now, by=caller)

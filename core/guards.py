"""
Core Module - Operation Guards.

============================================================
RESPONSIBILITY
============================================================
Wraps every state-mutating entry point.

- Global pause flag (circuit breaker): rejects new
  mutations until unpaused; reads stay available
- Single in-flight mutation per component: re-entrant
  calls are rejected to prevent double counting
- Samples the clock exactly once per operation

============================================================
USAGE
============================================================
    guard = OperationGuard("product_ledger", breaker, clock)

    with guard.mutation("create_product", caller) as op:
        record.timestamp = op.now

============================================================
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, Optional
import logging

from .clock import ClockProtocol, SystemClock
from .exceptions import ReentrantCallError, SystemPausedError


logger = logging.getLogger(__name__)


# ============================================================
# CIRCUIT BREAKER
# ============================================================

class CircuitBreaker:
    """
    Shared pause flag.

    One instance is shared by every component of a deployment
    so that a single pause stops all mutations uniformly.
    Authorization for flipping it lives in
    ``actor_registry.control.SystemControl``.
    """

    def __init__(self) -> None:
        self._paused = False
        self._paused_at: Optional[datetime] = None

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def paused_at(self) -> Optional[datetime]:
        return self._paused_at

    def set_paused(self, paused: bool, at: Optional[datetime] = None) -> None:
        self._paused = paused
        self._paused_at = at if paused else None
        logger.warning(f"Circuit breaker {'engaged' if paused else 'released'}")


# ============================================================
# OPERATION CONTEXT
# ============================================================

@dataclass(frozen=True)
class OperationContext:
    """Immutable inputs of one in-flight operation."""

    component: str
    operation: str
    caller: str
    now: datetime


# ============================================================
# OPERATION GUARD
# ============================================================

class OperationGuard:
    """Pause and re-entrancy guard for one component."""

    def __init__(
        self,
        component: str,
        breaker: Optional[CircuitBreaker] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.component = component
        self.breaker = breaker or CircuitBreaker()
        self.clock = clock or SystemClock()
        self._in_flight: Optional[str] = None

    @property
    def in_flight(self) -> Optional[str]:
        return self._in_flight

    @contextmanager
    def mutation(
        self,
        operation: str,
        caller: str,
        respect_pause: bool = True,
    ) -> Generator[OperationContext, None, None]:
        """
        Run one mutating operation.

        Args:
            operation: Entry point name (for errors and logs)
            caller: Identity invoking the operation
            respect_pause: False only for the unpause operation itself
        """
        if respect_pause and self.breaker.is_paused:
            raise SystemPausedError(f"{self.component}.{operation}")
        if self._in_flight is not None:
            raise ReentrantCallError(f"{self.component}.{operation}", self._in_flight)

        self._in_flight = f"{self.component}.{operation}"
        try:
            yield OperationContext(
                component=self.component,
                operation=operation,
                caller=caller,
                now=self.clock.now(),
            )
        finally:
            self._in_flight = None

    def now(self) -> datetime:
        """Clock reading for read-only computations."""
        return self.clock.now()

"""
Core Module Package.

Shared infrastructure that every component depends on.

Components:
- clock: Operation time abstraction
- exceptions: Error taxonomy
- guards: Pause flag and re-entrancy guard
- events: Structured notification log
- logging_setup: Root logger configuration
"""

from .clock import ClockProtocol, SystemClock, MockClock, elapsed_minutes
from .events import EventLog, Notification
from .guards import CircuitBreaker, OperationContext, OperationGuard
from .logging_setup import configure_logging


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "elapsed_minutes",
    "EventLog",
    "Notification",
    "CircuitBreaker",
    "OperationContext",
    "OperationGuard",
    "configure_logging",
]

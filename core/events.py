"""
Core Module - Notification Log.

============================================================
RESPONSIBILITY
============================================================
Every state-mutating operation emits one structured
notification carrying its key identifiers and outcome.

- Notifications are for off-chain indexing and alerting
- They are NOT authoritative state
- Subscribers are called synchronously after the emit

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A single emitted notification."""

    name: str
    """Event name, e.g. ``ProductCreated``."""

    payload: Dict[str, Any]
    """Key identifiers and outcome of the operation."""

    emitted_at: datetime
    """Operation time (sampled once per operation)."""

    sequence: int = 0
    """Position in the log."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "payload": dict(self.payload),
            "emitted_at": self.emitted_at.isoformat(),
            "sequence": self.sequence,
        }


Subscriber = Callable[[Notification], None]


class EventLog:
    """
    Append-only notification log shared by all components.

    Subscribers receive each notification after it is
    appended. A failing subscriber is logged and skipped so
    that indexing problems never leak into core state.
    """

    def __init__(self) -> None:
        self._notifications: List[Notification] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def emit(self, name: str, emitted_at: datetime, **payload: Any) -> Notification:
        notification = Notification(
            name=name,
            payload=payload,
            emitted_at=emitted_at,
            sequence=len(self._notifications) + 1,
        )
        self._notifications.append(notification)
        logger.info(f"{name} {payload}")

        for subscriber in self._subscribers:
            try:
                subscriber(notification)
            except Exception as e:
                logger.error(f"Notification subscriber failed for {name}: {e}", exc_info=True)

        return notification

    def all(self, name: Optional[str] = None) -> List[Notification]:
        """Return emitted notifications, optionally filtered by name."""
        if name is None:
            return list(self._notifications)
        return [n for n in self._notifications if n.name == name]

    def last(self) -> Optional[Notification]:
        return self._notifications[-1] if self._notifications else None

    def __len__(self) -> int:
        return len(self._notifications)

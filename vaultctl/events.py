"""
Event Bus — In-Process Record Lifecycle Notifications

Synchronous multicast. Three event kinds are published by the RecordStore:

    add     - a record was inserted
    update  - a record's name/value changed
    delete  - a record was removed

Each subscriber call is guarded on its own: an exception is logged and the
remaining subscribers still run. publish() always returns normally.

get_event_bus() returns the process-wide bus. Components that need
isolation (tests, embedded use) construct their own EventBus.

Author: vaultctl contributors
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from vaultctl.types import PublicRecord, _now_iso

logger = logging.getLogger(__name__)

RECORD_ADDED = "add"
RECORD_UPDATED = "update"
RECORD_DELETED = "delete"

EVENT_KINDS = (RECORD_ADDED, RECORD_UPDATED, RECORD_DELETED)


@dataclass(frozen=True)
class RecordEvent:
    """One lifecycle notification."""

    kind: str
    record: PublicRecord
    timestamp: str = field(default_factory=_now_iso)


Subscriber = Callable[[RecordEvent], None]


class EventBus:
    """Synchronous publish/subscribe channel keyed by event kind."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, kind: str, handler: Subscriber) -> Subscriber:
        """Register *handler* for *kind*. Returns the handler (decorator-friendly)."""
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {kind!r}")
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._subscribers[kind].append(handler)
        return handler

    def unsubscribe(self, kind: str, handler: Subscriber) -> bool:
        """Remove one registration of *handler*. Returns False if absent."""
        handlers = self._subscribers.get(kind, [])
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        return True

    def subscriber_count(self, kind: Optional[str] = None) -> int:
        if kind is not None:
            return len(self._subscribers.get(kind, []))
        return sum(len(h) for h in self._subscribers.values())

    def publish(self, kind: str, record: PublicRecord) -> int:
        """Deliver an event to every subscriber of *kind*.

        Returns:
            Number of subscribers that completed without raising.
        """
        event = RecordEvent(kind=kind, record=record)
        delivered = 0
        for handler in list(self._subscribers.get(kind, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event subscriber %r failed on %s event", handler, kind
                )
                continue
            delivered += 1
        return delivered


_default_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Return the process-wide event bus, creating it on first use."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus

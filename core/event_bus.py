"""
Event bus for ledger domain events.

Synchronous in-process pub/sub. Handlers run in the publisher's thread,
after the ledger write and its audit entry are saved, so a failing
handler is logged and skipped; it never undoes or blocks the write.
"""

import logging
from typing import Callable, Dict, List

from core.events import EVENT_TYPES, DomainEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    Subscribe by event class name, publish by event instance.

    Handlers for one event type are called in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable):
        """
        Args:
            event_type: Event class name, e.g. 'InvoicePaid'
            callback: Called with the event instance

        Raises:
            ValueError: If event_type is not a ledger event
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(
                f"Unknown event type '{event_type}'. Valid types: {', '.join(sorted(EVENT_TYPES))}"
            )
        self._subscribers.setdefault(event_type, []).append(callback)

    def has_subscribers(self, event_type: str) -> bool:
        return bool(self._subscribers.get(event_type))

    def publish(self, event: DomainEvent):
        event_type = type(event).__name__
        handlers = self._subscribers.get(event_type, [])
        if not handlers:
            logger.debug(f"No handlers for {event_type}")
            return

        for callback in handlers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )

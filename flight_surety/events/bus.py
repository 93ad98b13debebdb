"""
In-process fact bus.

Subscribers register for one fact type or for every fact and are called
synchronously, in registration order, for each published fact. Facts are
published after the producing operation has released its locks, so a
subscriber may call back into the ledger.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Type

from ..models.events import LedgerEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[LedgerEvent], None]


class EventBus:
    """Synchronous fan-out of ledger facts to subscribers."""

    def __init__(self):
        self._subscribers: Dict[Optional[Type[LedgerEvent]], List[Subscriber]] = {}
        self._guard = threading.Lock()
        self.published_count = 0
        self.failed_deliveries = 0

    def subscribe(
        self,
        handler: Subscriber,
        event_type: Optional[Type[LedgerEvent]] = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Callable receiving each matching fact
            event_type: Fact class to filter on; None receives every fact

        Returns:
            Callable that removes the subscription
        """
        with self._guard:
            self._subscribers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            with self._guard:
                handlers = self._subscribers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def _handlers_for(self, event: LedgerEvent) -> List[Subscriber]:
        with self._guard:
            handlers = list(self._subscribers.get(None, []))
            for event_type, registered in self._subscribers.items():
                if event_type is not None and isinstance(event, event_type):
                    handlers.extend(registered)
        return handlers

    def publish(self, event: LedgerEvent) -> None:
        """Deliver a fact to every matching subscriber."""
        self.published_count += 1
        for handler in self._handlers_for(event):
            try:
                handler(event)
            except Exception:
                # State is already committed; a broken subscriber must not undo it.
                self.failed_deliveries += 1
                logger.exception(f"Subscriber {handler!r} failed on {event.event_type}")

    def publish_all(self, events: Iterable[LedgerEvent]) -> None:
        for event in events:
            self.publish(event)

"""
Valkey publisher for ledger facts.

Publishes every fact delivered by the EventBus as JSON on the channel
``<prefix>:<event_type>`` so external subscribers can follow the ledger
without polling. Publishing is best effort: the ledger state is already
committed when a fact is published, so failures are logged and counted.
"""

import logging
from typing import Any, Callable, Dict, Optional

from valkey.exceptions import ConnectionError, TimeoutError

from ..models.events import LedgerEvent
from .bus import EventBus
from .client import ValkeyClient
from .config import ValkeyConnectionError

logger = logging.getLogger(__name__)


def build_channel(prefix: str, *parts: Any) -> str:
    """
    Build a channel name from a prefix and parts.

    Example:
        build_channel("flight_surety:events", "status_resolved")
        # Returns: "flight_surety:events:status_resolved"
    """
    channel_parts = [prefix.rstrip(":")]
    for part in parts:
        if part is not None:
            channel_parts.append(str(part))
    return ":".join(channel_parts)


class ValkeyEventPublisher:
    """Forwards ledger facts to Valkey pub/sub channels."""

    def __init__(self, client: ValkeyClient, channel_prefix: str = "flight_surety:events"):
        """
        Initialize publisher.

        Args:
            client: Valkey client (anything with a ``publish(channel, message)`` method)
            channel_prefix: Prefix for every channel name
        """
        self.client = client
        self.channel_prefix = channel_prefix
        self.published = 0
        self.failures = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, bus: EventBus) -> None:
        """Subscribe to every fact on the bus."""
        if self._unsubscribe is None:
            self._unsubscribe = bus.subscribe(self.handle)
            logger.info(f"Publishing ledger facts to Valkey channels {self.channel_prefix}:*")

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def channel_for(self, event: LedgerEvent) -> str:
        return build_channel(self.channel_prefix, event.event_type)

    def handle(self, event: LedgerEvent) -> None:
        channel = self.channel_for(event)
        try:
            receivers = self.client.publish(channel, event.model_dump_json())
            self.published += 1
            logger.debug(f"Published {event.event_type} to {channel} ({receivers} receivers)")
        except (ValkeyConnectionError, ConnectionError, TimeoutError, OSError) as e:
            self.failures += 1
            logger.warning(f"Failed to publish {event.event_type} to {channel}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "channel_prefix": self.channel_prefix,
            "published": self.published,
            "failures": self.failures,
        }

"""
Fact delivery for the flight surety ledger.

This package contains the in-process event bus and the optional Valkey
publisher that mirrors ledger facts onto pub/sub channels.
"""

from .bus import EventBus, Subscriber
from .config import ValkeyConfig, ValkeyConnectionError
from .client import ValkeyClient
from .publisher import ValkeyEventPublisher, build_channel

__all__ = [
    "EventBus",
    "Subscriber",
    "ValkeyConfig",
    "ValkeyConnectionError",
    "ValkeyClient",
    "ValkeyEventPublisher",
    "build_channel",
]

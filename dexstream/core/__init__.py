"""
Core building blocks: event bus, component lifecycle and exceptions.
"""

from .base import Component
from .errors import (
    AlreadyRunningError,
    ChainClientError,
    ConfigurationError,
    DexStreamError,
    LifecycleError,
    StorageError,
    UnsupportedEventError,
    UnsupportedProtocolError,
)
from .event_bus import EventBus, EventBusStats, Subscription

__all__ = [
    "Component",
    "EventBus",
    "EventBusStats",
    "Subscription",
    "DexStreamError",
    "ConfigurationError",
    "UnsupportedProtocolError",
    "LifecycleError",
    "AlreadyRunningError",
    "StorageError",
    "ChainClientError",
    "UnsupportedEventError",
]

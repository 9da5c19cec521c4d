"""
dexstream - DEX event listening and normalization pipeline.

Discovers pools from factory contracts, normalizes Uniswap V2/V3 and
PancakeSwap V2 events into StandardizedEvent records and ingests them into
DuckDB in batches.
"""

from .models import (
    EventType,
    FactoryEvent,
    ListenerError,
    PoolInfo,
    ProtocolType,
    StandardizedEvent,
    TokenInfo,
)

__version__ = "0.1.0"

__all__ = [
    "EventType",
    "FactoryEvent",
    "ListenerError",
    "PoolInfo",
    "ProtocolType",
    "StandardizedEvent",
    "TokenInfo",
]

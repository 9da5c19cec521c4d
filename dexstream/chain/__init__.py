"""
Blockchain client and raw event envelope.
"""

from .client import ChainClient, EventHandler, SubscriptionHandle, Web3ChainClient
from .envelope import EventMetadata, RawEventEnvelope, extract_metadata, to_hex

__all__ = [
    "ChainClient",
    "EventHandler",
    "SubscriptionHandle",
    "Web3ChainClient",
    "EventMetadata",
    "RawEventEnvelope",
    "extract_metadata",
    "to_hex",
]

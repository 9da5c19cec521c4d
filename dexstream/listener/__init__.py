"""
Event listening pipeline: token metadata, pool discovery, normalization.
"""

from .listener import ProtocolEventListener
from .normalizer import EventNormalizer, split_signed_delta
from .pools import DiscoveryState, PoolDiscovery, PoolRegistry
from .tokens import TokenMetadataResolver

__all__ = [
    "ProtocolEventListener",
    "EventNormalizer",
    "split_signed_delta",
    "DiscoveryState",
    "PoolDiscovery",
    "PoolRegistry",
    "TokenMetadataResolver",
]

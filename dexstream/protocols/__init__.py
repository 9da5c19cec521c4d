"""
Protocol definitions: ABIs, factory deployments and the adapter registry.
"""

from .registry import (
    EventShape,
    EventSignature,
    ProtocolAdapter,
    ProtocolFamily,
    ProtocolRegistry,
    PROTOCOL_ADAPTERS,
)

__all__ = [
    "EventShape",
    "EventSignature",
    "ProtocolAdapter",
    "ProtocolFamily",
    "ProtocolRegistry",
    "PROTOCOL_ADAPTERS",
]

"""
Protocol Adapter Registry.

Maps a protocol identifier to its factory and pool event shapes and to its
factory deployment on each chain. Adding a protocol means adding an entry to
PROTOCOL_ADAPTERS (plus, for a new family, a decoding rule in the
normalizer); nothing else changes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..core.errors import UnsupportedProtocolError
from ..models import FactoryEventType, ProtocolType
from . import abis
from .known_addresses import FACTORY_ADDRESSES

logger = logging.getLogger(__name__)


class ProtocolFamily(str, Enum):
    """Event layout family."""
    V2 = "v2"
    V3 = "v3"


# ============================================================================
# Event Shapes
# ============================================================================

@dataclass(frozen=True)
class EventSignature:
    """One event: its name, canonical signature and ABI entry."""
    name: str
    abi: dict

    @property
    def signature(self) -> str:
        """Canonical signature used to compute topic0, e.g. ``Sync(uint112,uint112)``."""
        types = ",".join(item["type"] for item in self.abi["inputs"])
        return f"{self.name}({types})"

    @classmethod
    def from_abi(cls, abi: dict) -> "EventSignature":
        return cls(name=abi["name"], abi=abi)


@dataclass(frozen=True)
class EventShape:
    """The set of events a listener subscribes to on one contract."""
    family: ProtocolFamily
    events: Tuple[EventSignature, ...]

    @property
    def names(self) -> List[str]:
        return [event.name for event in self.events]

    @property
    def abi(self) -> List[dict]:
        return [event.abi for event in self.events]

    def get(self, name: str) -> Optional[EventSignature]:
        for event in self.events:
            if event.name == name:
                return event
        return None


@dataclass(frozen=True)
class ProtocolAdapter:
    """Static description of one protocol."""
    protocol: ProtocolType
    family: ProtocolFamily
    factory_event: EventShape
    pool_events: EventShape
    factory_event_type: FactoryEventType

    @property
    def version(self) -> str:
        return self.family.value


def _shape(family: ProtocolFamily, *event_abis: dict) -> EventShape:
    return EventShape(family=family, events=tuple(EventSignature.from_abi(abi) for abi in event_abis))


V2_FACTORY_SHAPE = _shape(ProtocolFamily.V2, abis.PAIR_CREATED_EVENT)
V2_POOL_SHAPE = _shape(
    ProtocolFamily.V2,
    abis.V2_SWAP_EVENT,
    abis.V2_MINT_EVENT,
    abis.V2_BURN_EVENT,
    abis.V2_SYNC_EVENT,
)

V3_FACTORY_SHAPE = _shape(ProtocolFamily.V3, abis.POOL_CREATED_EVENT)
V3_POOL_SHAPE = _shape(
    ProtocolFamily.V3,
    abis.V3_INITIALIZE_EVENT,
    abis.V3_SWAP_EVENT,
    abis.V3_MINT_EVENT,
    abis.V3_BURN_EVENT,
)


def _v2_adapter(protocol: ProtocolType) -> ProtocolAdapter:
    return ProtocolAdapter(
        protocol=protocol,
        family=ProtocolFamily.V2,
        factory_event=V2_FACTORY_SHAPE,
        pool_events=V2_POOL_SHAPE,
        factory_event_type=FactoryEventType.PAIR_CREATED,
    )


def _v3_adapter(protocol: ProtocolType) -> ProtocolAdapter:
    return ProtocolAdapter(
        protocol=protocol,
        family=ProtocolFamily.V3,
        factory_event=V3_FACTORY_SHAPE,
        pool_events=V3_POOL_SHAPE,
        factory_event_type=FactoryEventType.POOL_CREATED,
    )


PROTOCOL_ADAPTERS: Dict[ProtocolType, ProtocolAdapter] = {
    ProtocolType.UNISWAP_V2: _v2_adapter(ProtocolType.UNISWAP_V2),
    ProtocolType.UNISWAP_V3: _v3_adapter(ProtocolType.UNISWAP_V3),
    ProtocolType.PANCAKESWAP_V2: _v2_adapter(ProtocolType.PANCAKESWAP_V2),
}


# ============================================================================
# Registry
# ============================================================================

class ProtocolRegistry:
    """
    Lookup table over protocol adapters and factory deployments.

    Usage:
        registry = ProtocolRegistry()
        shape = registry.pool_event_shape("uniswap-v3")
        factory = registry.factory_address(1, "uniswap-v2")
    """

    def __init__(
        self,
        adapters: Optional[Dict[ProtocolType, ProtocolAdapter]] = None,
        deployments: Optional[Dict[int, Dict[str, Dict[str, str]]]] = None,
    ):
        self._adapters = adapters if adapters is not None else PROTOCOL_ADAPTERS
        self._deployments = deployments if deployments is not None else FACTORY_ADDRESSES

    def adapter(self, protocol) -> ProtocolAdapter:
        """
        Get the adapter for a protocol.

        Raises:
            UnsupportedProtocolError: If the protocol is unknown
        """
        try:
            key = ProtocolType(protocol)
        except ValueError:
            raise UnsupportedProtocolError(str(protocol))

        adapter = self._adapters.get(key)
        if adapter is None:
            raise UnsupportedProtocolError(key.value)
        return adapter

    def factory_event_shape(self, protocol) -> EventShape:
        return self.adapter(protocol).factory_event

    def pool_event_shape(self, protocol) -> EventShape:
        return self.adapter(protocol).pool_events

    def family(self, protocol) -> ProtocolFamily:
        return self.adapter(protocol).family

    def version(self, protocol) -> str:
        return self.adapter(protocol).version

    def factory_address(self, chain_id: int, protocol) -> str:
        """
        Get the factory contract address of a protocol on a chain.

        Raises:
            UnsupportedProtocolError: If the protocol is unknown or not deployed on the chain
        """
        adapter = self.adapter(protocol)
        deployment = self._deployments.get(chain_id, {}).get(adapter.protocol.value)
        if not deployment:
            raise UnsupportedProtocolError(adapter.protocol.value, chain_id)
        return deployment["factory"]

    def supported_protocols(self, chain_id: int) -> List[ProtocolType]:
        """Protocols with a factory deployment on the chain."""
        return [
            ProtocolType(name)
            for name in self._deployments.get(chain_id, {})
            if name in {p.value for p in self._adapters}
        ]

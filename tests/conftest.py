"""
Shared test doubles.

FakeChainClient keeps subscriptions in memory, answers view calls from a
scripted table and lets tests emit decoded events. RecordingGateway records
inserts and can be switched into failure mode.
"""

import itertools
from typing import Any, Dict, List, Optional, Tuple

import pytest

from dexstream.chain.client import ChainClient, SubscriptionHandle
from dexstream.chain.envelope import RawEventEnvelope
from dexstream.core.errors import ChainClientError, StorageError
from dexstream.models import TokenInfo
from dexstream.protocols.registry import EventShape
from dexstream.storage.gateway import StorageGateway

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
NEW_TOKEN = "0x1111111111111111111111111111111111111111"
NEW_PAIR = "0x2222222222222222222222222222222222222222"
NEW_POOL = "0x3333333333333333333333333333333333333333"
SENDER = "0x4444444444444444444444444444444444444444"
RECIPIENT = "0x5555555555555555555555555555555555555555"

TX_HASH = "0x" + "ab" * 32


class FakeChainClient(ChainClient):
    """In-memory ChainClient."""

    def __init__(self):
        self.subscriptions: Dict[str, Tuple[SubscriptionHandle, EventShape, Any]] = {}
        self.unsubscribed: List[str] = []
        self.call_results: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str]] = []
        self.connected = False
        self.closed = False
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def subscribe(self, contract_address: str, shape: EventShape, handler) -> SubscriptionHandle:
        handle = SubscriptionHandle(
            id=f"sub-{next(self._ids)}",
            contract_address=contract_address,
            event_names=tuple(shape.names),
        )
        self.subscriptions[handle.id] = (handle, shape, handler)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if self.subscriptions.pop(handle.id, None) is not None:
            self.unsubscribed.append(handle.id)

    async def call(self, contract_address: str, function_abi: dict) -> Any:
        key = (contract_address.lower(), function_abi["name"])
        self.calls.append(key)
        if key not in self.call_results:
            raise ChainClientError(f"execution reverted: {function_abi['name']}()")
        result = self.call_results[key]
        if isinstance(result, Exception):
            raise result
        return result

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def set_call(self, address: str, function: str, result: Any) -> None:
        self.call_results[(address.lower(), function)] = result

    def set_token(self, address: str, symbol: str, decimals: int, name: Optional[str] = None) -> None:
        self.set_call(address, "symbol", symbol)
        self.set_call(address, "decimals", decimals)
        if name is not None:
            self.set_call(address, "name", name)

    def subscribed_addresses(self) -> List[str]:
        return [handle.contract_address.lower() for handle, _, _ in self.subscriptions.values()]

    def is_subscribed(self, address: str) -> bool:
        return address.lower() in self.subscribed_addresses()

    async def emit(
        self,
        address: str,
        event_name: str,
        args: Dict[str, Any],
        transaction_hash: Optional[str] = TX_HASH,
        block_number: Optional[int] = 100,
        log_index: Optional[int] = 0,
    ) -> int:
        """Deliver a decoded event to every matching subscription. Returns deliveries."""
        log = {"address": address}
        if transaction_hash is not None:
            log["transactionHash"] = transaction_hash
        if block_number is not None:
            log["blockNumber"] = block_number
        if log_index is not None:
            log["logIndex"] = log_index

        envelope = RawEventEnvelope(event_name=event_name, args=args, log=log, address=address)

        delivered = 0
        for handle, shape, handler in list(self.subscriptions.values()):
            if handle.contract_address.lower() == address.lower() and shape.get(event_name):
                await handler(envelope)
                delivered += 1
        return delivered


class RecordingGateway(StorageGateway):
    """StorageGateway that records writes in lists."""

    def __init__(self):
        self.events: List[Any] = []
        self.factory_events: List[Any] = []
        self.attempts = 0
        self.fail = False
        self.fail_on_attempt: Optional[int] = None
        self.connected = False
        self.schema_initialized = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def initialize_schema(self) -> None:
        self.schema_initialized = True

    async def close(self) -> None:
        self.closed = True

    def _check(self) -> None:
        self.attempts += 1
        if self.fail or self.attempts == self.fail_on_attempt:
            raise StorageError("storage unavailable")

    async def insert_event(self, event) -> None:
        self._check()
        self.events.append(event)

    async def insert_factory_event(self, event) -> None:
        self._check()
        self.factory_events.append(event)

    async def get_event_count(self) -> int:
        return len(self.events) + len(self.factory_events)


def make_chain_client() -> FakeChainClient:
    client = FakeChainClient()
    client.set_token(WETH, "WETH", 18, "Wrapped Ether")
    client.set_token(USDC, "USDC", 6, "USD Coin")
    return client


@pytest.fixture
def chain_client():
    return make_chain_client()


@pytest.fixture
def chain_client_factory():
    """Callable building a fresh FakeChainClient with WETH/USDC metadata."""
    return make_chain_client


@pytest.fixture
def recording_gateway_class():
    return RecordingGateway


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def weth():
    return TokenInfo(address=WETH, symbol="WETH", decimals=18, name="Wrapped Ether")


@pytest.fixture
def usdc():
    return TokenInfo(address=USDC, symbol="USDC", decimals=6, name="USD Coin")

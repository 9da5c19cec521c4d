"""
Unit tests for Web3ChainClient.

Logs are ABI-encoded with eth_abi and decoded by real web3 contract objects;
only the node answers (block number, eth_getLogs, WebSocket payloads) are
scripted.

Tests:
- Decoding and routing of encoded logs by topic0
- Undecodable logs and failing handlers are contained
- eth_getLogs polling ranges capped at max_block_range
- WebSocket payload routing by subscription id
"""

import asyncio
import pytest
from eth_abi import encode
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.providers import AsyncHTTPProvider

from dexstream.chain.client import Web3ChainClient
from dexstream.chain.envelope import extract_metadata
from dexstream.core.errors import ChainClientError
from dexstream.protocols import abis
from dexstream.protocols.registry import EventSignature, ProtocolRegistry

RPC = "http://localhost:8545"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
NEW_PAIR = "0x2222222222222222222222222222222222222222"
NEW_POOL = "0x3333333333333333333333333333333333333333"
SENDER = "0x4444444444444444444444444444444444444444"
V2_FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
TX_HASH = "0x" + "ab" * 32


def make_log(address, event_abi, values, block_number=18000000, log_index=0):
    """Build a raw log the way a node returns it."""
    topics = [Web3.keccak(text=EventSignature.from_abi(event_abi).signature)]
    data_types, data_values = [], []
    for item in event_abi["inputs"]:
        if item["indexed"]:
            topics.append(HexBytes(encode([item["type"]], [values[item["name"]]])))
        else:
            data_types.append(item["type"])
            data_values.append(values[item["name"]])

    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(encode(data_types, data_values)),
        "blockNumber": block_number,
        "blockHash": HexBytes(b"\x01" * 32),
        "transactionHash": HexBytes(TX_HASH),
        "transactionIndex": 0,
        "logIndex": log_index,
        "removed": False,
    }


def sync_log(reserve0, reserve1, **kwargs):
    return make_log(NEW_PAIR, abis.V2_SYNC_EVENT, {"reserve0": reserve0, "reserve1": reserve1}, **kwargs)


class StubEth:
    """AsyncEth stand-in: real contract objects, scripted node answers."""

    def __init__(self, heads=(0,), logs=None):
        self._contracts = AsyncWeb3(AsyncHTTPProvider(RPC)).eth
        self.heads = list(heads)
        self.logs = logs or {}
        self.log_requests = []
        self.subscribed = []
        self.unsubscribed = []

    def contract(self, **kwargs):
        return self._contracts.contract(**kwargs)

    @property
    def block_number(self):
        return self._head()

    async def _head(self):
        if len(self.heads) > 1:
            return self.heads.pop(0)
        return self.heads[0]

    async def get_logs(self, params):
        self.log_requests.append(params)
        return self.logs.get(params["fromBlock"], [])

    async def subscribe(self, kind, params):
        self.subscribed.append((kind, params))
        return f"0x{len(self.subscribed):x}"

    async def unsubscribe(self, subscription_id):
        self.unsubscribed.append(subscription_id)
        return True


class StubSocket:
    def __init__(self):
        self.payloads = []

    async def process_subscriptions(self):
        for payload in self.payloads:
            yield payload


class StubWeb3:
    def __init__(self, eth):
        self.eth = eth
        self.socket = StubSocket()
        self.provider = object()


class Received:
    def __init__(self):
        self.envelopes = []

    async def __call__(self, envelope):
        self.envelopes.append(envelope)


@pytest.fixture
def registry():
    return ProtocolRegistry()


@pytest.fixture
def polling_client():
    client = Web3ChainClient(rpc_endpoint=RPC, poll_interval=0.001, max_block_range=100)
    client._http = StubWeb3(StubEth())
    return client


async def wait_until(predicate, timeout=1.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(poll(), timeout=timeout)


# ============================================================================
# Construction Tests
# ============================================================================

def test_endpoint_required():
    with pytest.raises(ChainClientError):
        Web3ChainClient(rpc_endpoint=None)


@pytest.mark.asyncio
async def test_call_before_connect_raises():
    client = Web3ChainClient(rpc_endpoint=RPC)

    with pytest.raises(ChainClientError):
        await client.call(WETH, abis.ERC20_SYMBOL_FUNCTION)


# ============================================================================
# Decoding Tests
# ============================================================================

@pytest.mark.asyncio
async def test_encoded_logs_are_decoded_and_routed(polling_client, registry):
    received = Received()
    handle = await polling_client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), received)
    route = polling_client._routes[handle.id]

    await polling_client._deliver(route, sync_log(1000, 2000, log_index=5))
    await polling_client._deliver(route, make_log(NEW_PAIR, abis.V2_SWAP_EVENT, {
        "sender": SENDER, "to": SENDER,
        "amount0In": 100, "amount1In": 0, "amount0Out": 0, "amount1Out": 95,
    }, log_index=6))

    assert [e.event_name for e in received.envelopes] == ["Sync", "Swap"]
    sync, swap = received.envelopes
    assert sync.args == {"reserve0": 1000, "reserve1": 2000}
    assert swap.args["sender"] == SENDER
    assert swap.args["amount1Out"] == 95
    assert swap.address == NEW_PAIR

    metadata = extract_metadata(sync)
    assert metadata.transaction_hash == TX_HASH
    assert (metadata.block_number, metadata.log_index) == (18000000, 5)
    assert not metadata.synthetic

    await polling_client.close()


@pytest.mark.asyncio
async def test_factory_and_signed_v3_fields_decode(polling_client, registry):
    """Test indexed address topics and negative int256/int24 values."""
    pairs, swaps = Received(), Received()
    factory = await polling_client.subscribe(V2_FACTORY, registry.factory_event_shape("uniswap-v2"), pairs)
    pool = await polling_client.subscribe(NEW_POOL, registry.pool_event_shape("uniswap-v3"), swaps)

    await polling_client._deliver(polling_client._routes[factory.id], make_log(
        V2_FACTORY, abis.PAIR_CREATED_EVENT,
        {"token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 7},
    ))
    await polling_client._deliver(polling_client._routes[pool.id], make_log(
        NEW_POOL, abis.V3_SWAP_EVENT,
        {
            "sender": SENDER, "recipient": SENDER,
            "amount0": -5000, "amount1": 2000,
            "sqrtPriceX96": 2 ** 96, "liquidity": 10 ** 18, "tick": -200,
        },
    ))

    created = pairs.envelopes[0].args
    assert (created["token0"], created["token1"], created["pair"]) == (USDC, WETH, NEW_PAIR)

    swap = swaps.envelopes[0].args
    assert (swap["amount0"], swap["amount1"], swap["tick"]) == (-5000, 2000, -200)

    await polling_client.close()


@pytest.mark.asyncio
async def test_unknown_and_undecodable_logs_are_skipped(polling_client, registry):
    received = Received()
    handle = await polling_client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), received)
    route = polling_client._routes[handle.id]

    truncated = sync_log(1, 2)
    truncated["data"] = HexBytes(b"\x00" * 10)
    foreign = make_log(NEW_PAIR, abis.V3_INITIALIZE_EVENT, {"sqrtPriceX96": 1, "tick": 0})

    await polling_client._deliver(route, truncated)
    await polling_client._deliver(route, foreign)
    await polling_client._deliver(route, {"address": NEW_PAIR, "topics": []})

    assert received.envelopes == []

    await polling_client.close()


@pytest.mark.asyncio
async def test_handler_errors_are_contained(polling_client, registry):
    async def broken(envelope):
        raise RuntimeError("consumer bug")

    handle = await polling_client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), broken)

    await polling_client._deliver(polling_client._routes[handle.id], sync_log(1, 2))
    assert polling_client.subscription_count == 1

    await polling_client.close()


# ============================================================================
# Polling Tests
# ============================================================================

@pytest.mark.asyncio
async def test_polling_ranges_are_capped(registry):
    """Test a 250-block gap is fetched as 100 + 100 + 50 block requests."""
    eth = StubEth(heads=[1000, 1000, 1250], logs={1101: [sync_log(3, 4, block_number=1150)]})
    client = Web3ChainClient(rpc_endpoint=RPC, poll_interval=0.001, max_block_range=100)
    client._http = StubWeb3(eth)
    received = Received()

    handle = await client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), received)
    await wait_until(lambda: len(eth.log_requests) >= 3)
    await client.unsubscribe(handle)

    ranges = [(r["fromBlock"], r["toBlock"]) for r in eth.log_requests]
    assert ranges == [(1001, 1100), (1101, 1200), (1201, 1250)]

    request = eth.log_requests[0]
    assert request["address"] == NEW_PAIR
    assert len(request["topics"][0]) == 4

    assert [e.args["reserve0"] for e in received.envelopes] == [3]
    assert client.subscription_count == 0

    await client.close()


@pytest.mark.asyncio
async def test_polling_starts_at_next_block(registry):
    """Test history before the subscription is not replayed."""
    eth = StubEth(heads=[500])
    client = Web3ChainClient(rpc_endpoint=RPC, poll_interval=0.001)
    client._http = StubWeb3(eth)

    handle = await client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), Received())
    await asyncio.sleep(0.02)
    await client.unsubscribe(handle)

    assert eth.log_requests == []


# ============================================================================
# WebSocket Tests
# ============================================================================

@pytest.mark.asyncio
async def test_websocket_payloads_route_by_subscription_id(registry):
    eth = StubEth()
    client = Web3ChainClient(rpc_endpoint=None, ws_endpoint="ws://localhost:8546")
    client._ws = StubWeb3(eth)
    pool_events, factory_events = Received(), Received()

    pool = await client.subscribe(NEW_PAIR, registry.pool_event_shape("uniswap-v2"), pool_events)
    factory = await client.subscribe(V2_FACTORY, registry.factory_event_shape("uniswap-v2"), factory_events)

    assert [kind for kind, _ in eth.subscribed] == ["logs", "logs"]
    assert eth.subscribed[0][1]["address"] == NEW_PAIR

    client._ws.socket.payloads = [
        {"subscription": pool.id, "result": sync_log(1, 2)},
        {"subscription": "0xdead", "result": sync_log(3, 4)},
        {"subscription": pool.id, "result": sync_log(5, 6, log_index=1)},
    ]
    await client._read_subscriptions()

    assert [e.args["reserve0"] for e in pool_events.envelopes] == [1, 5]
    assert factory_events.envelopes == []

    await client.unsubscribe(factory)
    await client.unsubscribe(factory)
    assert eth.unsubscribed == [factory.id]
    assert client.subscription_ids() == [pool.id]

    await client.close()

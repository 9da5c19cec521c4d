"""
Unit tests for pool discovery and the pool registry.

Tests:
- Registry claim/uniqueness and case-insensitive lookups
- Factory events produce FactoryEvents and attach pools
- Duplicate discoveries are no-ops
- Popular pool seeding with token fallback
- Unsupported protocols reported and skipped
- Failed FactoryEvent delivery still attaches the pool
- Teardown
"""

import asyncio
import pytest

from dexstream.core.errors import UnsupportedProtocolError
from dexstream.listener.pools import DiscoveryState, PoolDiscovery, PoolRegistry
from dexstream.listener.tokens import TokenMetadataResolver
from dexstream.models import FactoryEventType, PoolInfo, ProtocolType
from dexstream.protocols.registry import ProtocolRegistry

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
NEW_TOKEN = "0x1111111111111111111111111111111111111111"
NEW_PAIR = "0x2222222222222222222222222222222222222222"
NEW_POOL = "0x3333333333333333333333333333333333333333"
V2_FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
V3_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
TX_HASH = "0x" + "cd" * 32


class Recorder:
    """Collects discovery callbacks."""

    def __init__(self):
        self.factory_events = []
        self.pool_events = []
        self.errors = []

    async def on_factory_event(self, event):
        self.factory_events.append(event)

    async def on_pool_event(self, pool, envelope):
        self.pool_events.append((pool, envelope))

    async def on_error(self, context, cause):
        self.errors.append((context, cause))


@pytest.fixture
def recorder():
    return Recorder()


def make_discovery(client, recorder, chain_id=1, popular_pools=None, fallback=None):
    return PoolDiscovery(
        client=client,
        protocols=ProtocolRegistry(),
        resolver=TokenMetadataResolver(client, chain_id),
        chain_id=chain_id,
        on_factory_event=recorder.on_factory_event,
        on_pool_event=recorder.on_pool_event,
        on_error=recorder.on_error,
        popular_pools=popular_pools if popular_pools is not None else {},
        pool_token_fallback=fallback if fallback is not None else {},
    )


# ============================================================================
# Registry Tests
# ============================================================================

def test_registry_claim_is_exclusive(usdc, weth):
    registry = PoolRegistry()

    assert registry.claim(NEW_PAIR)
    assert not registry.claim(NEW_PAIR.upper().replace("0X", "0x"))

    registry.register(PoolInfo(
        address=NEW_PAIR, protocol=ProtocolType.UNISWAP_V2, version="v2",
        token0=usdc, token1=weth, created_at=1,
    ))
    assert not registry.claim(NEW_PAIR)
    assert NEW_PAIR.lower() in registry
    assert len(registry) == 1


def test_registry_release_allows_retry():
    registry = PoolRegistry()
    registry.claim(NEW_PAIR)
    registry.release(NEW_PAIR)

    assert registry.claim(NEW_PAIR)


def test_registry_get_returns_snapshot(usdc, weth):
    registry = PoolRegistry()
    registry.register(PoolInfo(
        address=NEW_PAIR, protocol=ProtocolType.UNISWAP_V2, version="v2",
        token0=usdc, token1=weth, created_at=1,
    ))

    snapshot = registry.get(NEW_PAIR.upper().replace("0X", "0x"))
    snapshot.is_active = False

    assert registry.get(NEW_PAIR).is_active
    assert registry.get("0xdeadbeef") is None


# ============================================================================
# Factory Event Tests
# ============================================================================

@pytest.mark.asyncio
async def test_start_subscribes_to_factories(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder)

    started = await discovery.start(["uniswap-v2", "uniswap-v3"])

    assert started == ["uniswap-v2", "uniswap-v3"]
    assert chain_client.is_subscribed(V2_FACTORY)
    assert chain_client.is_subscribed(V3_FACTORY)
    assert discovery.state("uniswap-v2") is DiscoveryState.FACTORY_SUBSCRIBED


@pytest.mark.asyncio
async def test_pair_created_attaches_pool(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v2"])

    await chain_client.emit(V2_FACTORY, "PairCreated", {
        "token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1,
    }, transaction_hash=TX_HASH, block_number=42)
    await discovery.wait_for_attachments()

    assert len(recorder.factory_events) == 1
    factory_event = recorder.factory_events[0]
    assert factory_event.event_type is FactoryEventType.PAIR_CREATED
    assert factory_event.pair_address == NEW_PAIR
    assert factory_event.block_number == 42
    assert factory_event.transaction_hash == TX_HASH
    assert factory_event.fee is None

    pool = discovery.pools.get(NEW_PAIR)
    assert pool.token0.symbol == "USDC"
    assert pool.token1.symbol == "WETH"
    assert pool.version == "v2"
    assert chain_client.is_subscribed(NEW_PAIR)
    assert discovery.state("uniswap-v2") is DiscoveryState.POOL_ATTACHED


@pytest.mark.asyncio
async def test_pool_created_carries_fee_and_tick_spacing(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v3"])

    await chain_client.emit(V3_FACTORY, "PoolCreated", {
        "token0": NEW_TOKEN, "token1": WETH, "fee": 3000, "tickSpacing": 60, "pool": NEW_POOL,
    })
    await discovery.wait_for_attachments()

    factory_event = recorder.factory_events[0]
    assert factory_event.event_type is FactoryEventType.POOL_CREATED
    assert (factory_event.fee, factory_event.tick_spacing) == (3000, 60)

    pool = discovery.pools.get(NEW_POOL)
    assert (pool.fee, pool.tick_spacing) == (3000, 60)
    assert pool.token0.symbol == "UNKNOWN"


@pytest.mark.asyncio
async def test_duplicate_pool_is_noop(chain_client, recorder):
    """Test concurrent discoveries of one address attach exactly once."""
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v2"])
    args = {"token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1}

    await asyncio.gather(
        chain_client.emit(V2_FACTORY, "PairCreated", args),
        chain_client.emit(V2_FACTORY, "PairCreated", args),
    )
    await discovery.wait_for_attachments()
    await chain_client.emit(V2_FACTORY, "PairCreated", args)
    await discovery.wait_for_attachments()

    assert len(discovery.pools) == 1
    assert chain_client.subscribed_addresses().count(NEW_PAIR.lower()) == 1


@pytest.mark.asyncio
async def test_pool_events_are_forwarded(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v2"])
    await chain_client.emit(V2_FACTORY, "PairCreated", {
        "token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1,
    })
    await discovery.wait_for_attachments()

    await chain_client.emit(NEW_PAIR, "Sync", {"reserve0": 1, "reserve1": 2})

    assert len(recorder.pool_events) == 1
    pool, envelope = recorder.pool_events[0]
    assert pool.address == NEW_PAIR
    assert envelope.event_name == "Sync"


# ============================================================================
# Seeding Tests
# ============================================================================

@pytest.mark.asyncio
async def test_seed_popular_pools(chain_client, recorder):
    """Test token0()/token1() reads with table fallback; seeded pools emit no FactoryEvent."""
    seeded_ok = "0x" + "a1" * 20
    seeded_fallback = "0x" + "b2" * 20
    seeded_missing = "0x" + "c3" * 20
    other_protocol = "0x" + "d4" * 20

    chain_client.set_call(seeded_ok, "token0", USDC)
    chain_client.set_call(seeded_ok, "token1", WETH)

    discovery = make_discovery(
        chain_client,
        recorder,
        popular_pools={1: [
            {"address": seeded_ok, "protocol": "uniswap-v2"},
            {"address": seeded_fallback, "protocol": "uniswap-v2"},
            {"address": seeded_missing, "protocol": "uniswap-v2"},
            {"address": other_protocol, "protocol": "uniswap-v3", "fee": 500, "tick_spacing": 10},
        ]},
        fallback={seeded_fallback: (WETH, USDC)},
    )
    await discovery.start(["uniswap-v2"])

    scheduled = await discovery.seed_popular_pools()
    await discovery.wait_for_attachments()

    assert scheduled == 2
    assert discovery.pools.get(seeded_ok).token0.symbol == "USDC"
    assert discovery.pools.get(seeded_fallback).token0.symbol == "WETH"
    assert discovery.pools.get(seeded_missing) is None
    assert discovery.pools.get(other_protocol) is None
    assert recorder.factory_events == []


# ============================================================================
# Error & Teardown Tests
# ============================================================================

@pytest.mark.asyncio
async def test_unsupported_protocol_is_reported_and_skipped(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder, chain_id=56)

    started = await discovery.start(["uniswap-v3", "pancakeswap-v2", "sushiswap"])

    assert started == ["pancakeswap-v2"]
    assert len(recorder.errors) == 2
    assert all(isinstance(cause, UnsupportedProtocolError) for _, cause in recorder.errors)


@pytest.mark.asyncio
async def test_stop_unsubscribes_and_deactivates(chain_client, recorder):
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v2"])
    await chain_client.emit(V2_FACTORY, "PairCreated", {
        "token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1,
    })
    await discovery.wait_for_attachments()

    await discovery.stop()

    assert chain_client.subscriptions == {}
    assert len(chain_client.unsubscribed) == 2
    assert discovery.subscription_count == 0
    assert discovery.state("uniswap-v2") is DiscoveryState.UNINITIALIZED
    pool = discovery.pools.get(NEW_PAIR)
    assert pool is not None
    assert not pool.is_active


@pytest.mark.asyncio
async def test_stop_cancels_pending_attachments(chain_client, recorder):
    """Test in-flight token reads are abandoned on stop."""
    blocked = asyncio.Event()

    async def hanging_call(address, function_abi):
        await blocked.wait()

    chain_client.call = hanging_call
    discovery = make_discovery(chain_client, recorder)
    await discovery.start(["uniswap-v2"])
    await chain_client.emit(V2_FACTORY, "PairCreated", {
        "token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1,
    })
    await asyncio.sleep(0)
    assert discovery.pending_attachments == 1

    await discovery.stop()

    assert discovery.pending_attachments == 0
    assert discovery.pools.get(NEW_PAIR) is None
    assert not chain_client.is_subscribed(NEW_PAIR)


@pytest.mark.asyncio
async def test_failed_factory_notification_still_attaches(chain_client, recorder):
    """Test a consumer that cannot take the FactoryEvent does not cost the pool."""
    async def saturated(event):
        raise asyncio.QueueFull("Event queue full")

    discovery = make_discovery(chain_client, recorder)
    discovery._on_factory_event = saturated
    await discovery.start(["uniswap-v2"])

    await chain_client.emit(V2_FACTORY, "PairCreated", {
        "token0": USDC, "token1": WETH, "pair": NEW_PAIR, "": 1,
    })
    await discovery.wait_for_attachments()

    assert discovery.pools.get(NEW_PAIR) is not None
    assert chain_client.is_subscribed(NEW_PAIR)

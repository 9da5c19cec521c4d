"""
Pool Discovery & Registry.

PoolDiscovery subscribes to each protocol's factory contract, turns creation
events into FactoryEvents, and attaches a pool-level subscription for every
new pool. It also pre-seeds a fixed list of high-volume pools so there is
coverage before any factory event fires.

PoolRegistry holds the discovered PoolInfo objects. An address is claimed
synchronously before any await, so concurrent discoveries of the same pool
produce exactly one PoolInfo.
"""

import asyncio
import logging
import time
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ..chain.client import ChainClient, SubscriptionHandle
from ..chain.envelope import RawEventEnvelope, extract_metadata, to_int
from ..core.errors import UnsupportedProtocolError
from ..models import FactoryEvent, PoolInfo
from ..protocols.abis import TOKEN0_FUNCTION, TOKEN1_FUNCTION
from ..protocols.known_addresses import POOL_TOKEN_FALLBACK, POPULAR_POOLS
from ..protocols.registry import ProtocolAdapter, ProtocolFamily, ProtocolRegistry
from .tokens import TokenMetadataResolver

logger = logging.getLogger(__name__)

FactoryEventCallback = Callable[[FactoryEvent], Awaitable[None]]
PoolEventCallback = Callable[[PoolInfo, RawEventEnvelope], Awaitable[None]]
ErrorCallback = Callable[[str, BaseException], Awaitable[None]]


class DiscoveryState(str, Enum):
    """Per-protocol discovery state."""
    UNINITIALIZED = "uninitialized"
    FACTORY_SUBSCRIBED = "factory_subscribed"
    POOL_ATTACHED = "pool_attached"


# ============================================================================
# Registry
# ============================================================================

class PoolRegistry:
    """Address-keyed PoolInfo store. Lookups are case-insensitive."""

    def __init__(self):
        self._pools: Dict[str, PoolInfo] = {}
        self._claimed: Set[str] = set()

    def claim(self, address: str) -> bool:
        """
        Reserve an address for attachment.

        Returns False when the address is already registered or being
        attached. Must be called without an await between check and use.
        """
        key = address.lower()
        if key in self._pools or key in self._claimed:
            return False
        self._claimed.add(key)
        return True

    def release(self, address: str) -> None:
        """Drop a claim whose attachment did not complete."""
        self._claimed.discard(address.lower())

    def register(self, pool: PoolInfo) -> None:
        key = pool.address.lower()
        self._claimed.discard(key)
        self._pools[key] = pool

    def get(self, address: str) -> Optional[PoolInfo]:
        pool = self._pools.get(address.lower())
        return pool.snapshot() if pool else None

    def snapshots(self) -> List[PoolInfo]:
        return [pool.snapshot() for pool in self._pools.values()]

    def deactivate_all(self) -> None:
        for pool in self._pools.values():
            pool.is_active = False

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._pools

    def __len__(self) -> int:
        return len(self._pools)


# ============================================================================
# Discovery
# ============================================================================

class PoolDiscovery:
    """
    Owns every factory and pool subscription of one listener.

    Usage:
        discovery = PoolDiscovery(client, registry, resolver, chain_id=1,
                                  on_factory_event=..., on_pool_event=..., on_error=...)
        await discovery.start(["uniswap-v2", "uniswap-v3"])
        await discovery.seed_popular_pools()
        ...
        await discovery.stop()
    """

    def __init__(
        self,
        client: ChainClient,
        protocols: ProtocolRegistry,
        resolver: TokenMetadataResolver,
        chain_id: int,
        on_factory_event: FactoryEventCallback,
        on_pool_event: PoolEventCallback,
        on_error: ErrorCallback,
        pools: Optional[PoolRegistry] = None,
        popular_pools: Optional[Dict[int, List[dict]]] = None,
        pool_token_fallback: Optional[Dict[str, Tuple[str, str]]] = None,
    ):
        self.client = client
        self.protocols = protocols
        self.resolver = resolver
        self.chain_id = chain_id
        self.pools = pools if pools is not None else PoolRegistry()

        self._on_factory_event = on_factory_event
        self._on_pool_event = on_pool_event
        self._on_error = on_error
        self._popular_pools = popular_pools if popular_pools is not None else POPULAR_POOLS
        self._pool_token_fallback = (
            pool_token_fallback if pool_token_fallback is not None else POOL_TOKEN_FALLBACK
        )

        self._adapters: Dict[str, ProtocolAdapter] = {}
        self._states: Dict[str, DiscoveryState] = {}
        self._factory_handles: Dict[str, SubscriptionHandle] = {}
        self._pool_handles: Dict[str, SubscriptionHandle] = {}
        self._attach_tasks: Set[asyncio.Task] = set()
        self._stopped = False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self, protocols: List[str]) -> List[str]:
        """
        Subscribe to the factory of each protocol.

        Unsupported protocols are reported through on_error and skipped.

        Returns:
            The protocols whose factory subscription succeeded
        """
        self._stopped = False
        started = []

        for protocol in protocols:
            try:
                adapter = self.protocols.adapter(protocol)
                factory_address = self.protocols.factory_address(self.chain_id, protocol)
            except UnsupportedProtocolError as e:
                logger.error(f"Skipping protocol {protocol} on chain {self.chain_id}: {e}")
                await self._on_error(f"Unsupported protocol {protocol}", e)
                continue

            name = adapter.protocol.value
            self._states.setdefault(name, DiscoveryState.UNINITIALIZED)

            try:
                handle = await self.client.subscribe(
                    factory_address,
                    adapter.factory_event,
                    partial(self._handle_factory_event, adapter),
                )
            except Exception as e:
                logger.error(f"Failed to subscribe to {name} factory {factory_address}: {e}")
                await self._on_error(f"Factory subscription failed for {name}", e)
                continue

            self._adapters[name] = adapter
            self._factory_handles[name] = handle
            self._states[name] = DiscoveryState.FACTORY_SUBSCRIBED
            started.append(name)
            logger.info(f"Listening for {name} pool creation on factory {factory_address}")

        return started

    async def seed_popular_pools(self) -> int:
        """
        Attach the hardcoded high-volume pools of this chain.

        Only pools of protocols whose factory subscription is active are
        seeded. Seeded pools produce no FactoryEvent.

        Returns:
            Number of pools scheduled for attachment
        """
        entries = [
            entry for entry in self._popular_pools.get(self.chain_id, [])
            if entry["protocol"] in self._adapters
        ]
        if not entries:
            return 0

        results = await asyncio.gather(*(self._pool_tokens(entry["address"]) for entry in entries))

        scheduled = 0
        for entry, tokens in zip(entries, results):
            if tokens is None:
                logger.warning(f"Skipping popular pool {entry['address']}: token addresses unavailable")
                continue
            task = self.attach(
                self._adapters[entry["protocol"]],
                entry["address"],
                tokens[0],
                tokens[1],
                fee=entry.get("fee"),
                tick_spacing=entry.get("tick_spacing"),
            )
            if task is not None:
                scheduled += 1

        logger.info(f"Seeding {scheduled} popular pools on chain {self.chain_id}")
        return scheduled

    async def _pool_tokens(self, pool_address: str) -> Optional[Tuple[str, str]]:
        try:
            token0 = await self.client.call(pool_address, TOKEN0_FUNCTION)
            token1 = await self.client.call(pool_address, TOKEN1_FUNCTION)
            return str(token0), str(token1)
        except Exception as e:
            logger.debug(f"token0()/token1() failed for {pool_address}: {e}")
            return self._pool_token_fallback.get(pool_address.lower())

    # ------------------------------------------------------------------
    # Factory events
    # ------------------------------------------------------------------

    async def _handle_factory_event(self, adapter: ProtocolAdapter, envelope: RawEventEnvelope) -> None:
        if self._stopped:
            return

        args = envelope.args
        metadata = extract_metadata(envelope)

        if adapter.family is ProtocolFamily.V3:
            pool_address = args["pool"]
            fee = to_int(args.get("fee"))
            tick_spacing = to_int(args.get("tickSpacing"))
        else:
            pool_address = args["pair"]
            fee = None
            tick_spacing = None

        event = FactoryEvent(
            protocol=adapter.protocol,
            event_type=adapter.factory_event_type,
            token0=args["token0"],
            token1=args["token1"],
            pair_address=pool_address,
            block_number=metadata.block_number,
            transaction_hash=metadata.transaction_hash,
            fee=fee,
            tick_spacing=tick_spacing,
        )

        logger.info(
            f"New {adapter.protocol.value} pool {pool_address} ({event.token0}/{event.token1})",
            extra={"chain_id": self.chain_id, "protocol": adapter.protocol.value, "pool": pool_address},
        )

        # Attach before notifying so a saturated consumer cannot cost the pool
        self.attach(adapter, pool_address, event.token0, event.token1, fee, tick_spacing)

        try:
            await self._on_factory_event(event)
        except Exception as e:
            logger.error(f"Failed to publish factory event for {pool_address}: {e}")

    # ------------------------------------------------------------------
    # Pool attachment
    # ------------------------------------------------------------------

    def attach(
        self,
        adapter: ProtocolAdapter,
        pool_address: str,
        token0: str,
        token1: str,
        fee: Optional[int] = None,
        tick_spacing: Optional[int] = None,
    ) -> Optional[asyncio.Task]:
        """
        Claim the address and schedule the attachment in a tracked task.

        Returns None when the pool is already known (a logged no-op).
        """
        if self._stopped:
            return None

        if not self.pools.claim(pool_address):
            logger.debug(f"Pool {pool_address} already known, ignoring")
            return None

        task = asyncio.create_task(
            self._attach(adapter, pool_address, token0, token1, fee, tick_spacing)
        )
        self._attach_tasks.add(task)
        task.add_done_callback(self._attach_tasks.discard)
        return task

    async def _attach(
        self,
        adapter: ProtocolAdapter,
        pool_address: str,
        token0_address: str,
        token1_address: str,
        fee: Optional[int],
        tick_spacing: Optional[int],
    ) -> None:
        try:
            token0, token1 = await asyncio.gather(
                self.resolver.resolve(token0_address),
                self.resolver.resolve(token1_address),
            )

            pool = PoolInfo(
                address=pool_address,
                protocol=adapter.protocol,
                version=adapter.version,
                token0=token0,
                token1=token1,
                created_at=int(time.time() * 1000),
                fee=fee,
                tick_spacing=tick_spacing,
            )

            handle = await self.client.subscribe(
                pool_address,
                adapter.pool_events,
                partial(self._handle_pool_event, pool),
            )
        except asyncio.CancelledError:
            self.pools.release(pool_address)
            raise
        except Exception as e:
            self.pools.release(pool_address)
            logger.error(f"Failed to attach pool {pool_address}: {e}")
            await self._on_error(f"Pool attachment failed for {pool_address}", e)
            return

        self.pools.register(pool)
        self._pool_handles[pool_address.lower()] = handle
        self._states[adapter.protocol.value] = DiscoveryState.POOL_ATTACHED
        logger.debug(f"Attached {pool.token0.symbol}/{pool.token1.symbol} pool {pool_address}")

    async def _handle_pool_event(self, pool: PoolInfo, envelope: RawEventEnvelope) -> None:
        if not pool.is_active or self._stopped:
            return
        await self._on_pool_event(pool, envelope)

    async def wait_for_attachments(self) -> None:
        """Wait until every pending attachment has finished."""
        while self._attach_tasks:
            await asyncio.gather(*list(self._attach_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """
        Cancel pending attachments and unsubscribe every handle.

        PoolInfo objects stay readable but are marked inactive.
        """
        self._stopped = True

        tasks = list(self._attach_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._attach_tasks.clear()

        handles = list(self._factory_handles.values()) + list(self._pool_handles.values())
        for handle in handles:
            try:
                await self.client.unsubscribe(handle)
            except Exception as e:
                logger.warning(f"Failed to unsubscribe {handle.contract_address}: {e}")

        self._factory_handles.clear()
        self._pool_handles.clear()
        self._adapters.clear()
        self._states = {name: DiscoveryState.UNINITIALIZED for name in self._states}
        self.pools.deactivate_all()

        logger.info(f"Pool discovery stopped ({len(handles)} subscriptions removed)")

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def state(self, protocol: str) -> DiscoveryState:
        return self._states.get(str(getattr(protocol, "value", protocol)), DiscoveryState.UNINITIALIZED)

    @property
    def subscription_count(self) -> int:
        return len(self._factory_handles) + len(self._pool_handles)

    @property
    def pending_attachments(self) -> int:
        return len(self._attach_tasks)

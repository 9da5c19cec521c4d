"""
Protocol Event Listener - public entry point of the listening pipeline.

One listener covers one chain. It wires the chain client, the protocol
registry, pool discovery and the normalizer together and publishes three
notification types on its own EventBus:

- StandardizedEvent for every normalized pool event
- FactoryEvent for every pool/pair creation
- ListenerError(context, cause) for reported failures
"""

import logging
from typing import Any, Callable, List, Optional

from ..chain.client import ChainClient, Web3ChainClient
from ..chain.envelope import RawEventEnvelope
from ..config.settings import ListenerConfig
from ..core.base import Component
from ..core.errors import ConfigurationError
from ..core.event_bus import EventBus, Subscription
from ..models import FactoryEvent, ListenerError, PoolInfo, StandardizedEvent
from ..protocols.registry import ProtocolRegistry
from .normalizer import EventNormalizer
from .pools import PoolDiscovery, PoolRegistry
from .tokens import TokenMetadataResolver

logger = logging.getLogger(__name__)


class ProtocolEventListener(Component):
    """
    Listens to factory and pool events of the configured protocols on one chain.

    Usage:
        listener = ProtocolEventListener()
        listener.subscribe(StandardizedEvent, on_event)
        listener.subscribe(FactoryEvent, on_factory_event)
        listener.subscribe(ListenerError, on_error)
        await listener.start(ListenerConfig(chain_id=1, rpc_endpoint="https://...",
                                            protocols=["uniswap-v2"]))
        ...
        await listener.stop()
    """

    def __init__(
        self,
        config: Optional[ListenerConfig] = None,
        client: Optional[ChainClient] = None,
        protocols: Optional[ProtocolRegistry] = None,
        bus: Optional[EventBus] = None,
        normalizer: Optional[EventNormalizer] = None,
    ):
        """
        Initialize the listener.

        Args:
            config: Listener configuration (can also be passed to start())
            client: Chain client; a Web3ChainClient is built from config when omitted
            protocols: Protocol registry (defaults to the built-in adapters)
            bus: Notification bus (a private one is created when omitted)
            normalizer: Event normalizer
        """
        super().__init__(name="listener")
        self.config = config
        self.protocols = protocols or ProtocolRegistry()
        self.normalizer = normalizer or EventNormalizer(self.protocols)
        self._bus = bus or EventBus()

        self._client = client
        self._owns_client = False
        self._pools = PoolRegistry()
        self._discovery: Optional[PoolDiscovery] = None
        self._active_protocols: List[str] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, config: Optional[ListenerConfig] = None) -> None:
        """
        Start listening.

        Raises:
            AlreadyRunningError: If the listener is already running
            ConfigurationError: If no configuration is available
        """
        self._ensure_not_running()

        if config is not None:
            self.config = config
        if self.config is None:
            raise ConfigurationError("Listener configuration is required")

        config = self.config
        self.name = f"listener-{config.display_name}"
        logger.info(
            f"Starting listener on {config.display_name} (chain {config.chain_id}) "
            f"for {', '.join(str(p) for p in config.protocols)}"
        )

        if self._client is None or self._owns_client:
            self._client = Web3ChainClient(
                rpc_endpoint=config.rpc_endpoint,
                ws_endpoint=config.ws_endpoint,
                poll_interval=config.poll_interval_seconds,
            )
            self._owns_client = True

        await self._client.connect()
        await self._bus.start()

        self._pools = PoolRegistry()
        self._discovery = PoolDiscovery(
            client=self._client,
            protocols=self.protocols,
            resolver=TokenMetadataResolver(self._client, config.chain_id),
            chain_id=config.chain_id,
            on_factory_event=self._publish_factory_event,
            on_pool_event=self._handle_pool_event,
            on_error=self._report_error,
            pools=self._pools,
        )

        try:
            self._active_protocols = await self._discovery.start(list(config.protocols))
            if config.seed_popular_pools:
                await self._discovery.seed_popular_pools()
        except Exception:
            await self._teardown()
            raise

        self._mark_started()
        logger.info(
            f"Listener {config.display_name} started "
            f"({len(self._active_protocols)}/{len(config.protocols)} protocols active)"
        )

    async def stop(self) -> None:
        """Stop listening. No-op when not running."""
        if not self.is_running:
            return

        await self._teardown()
        self._mark_stopped()
        logger.info(f"Listener {self.name} stopped ({len(self._pools)} pools known)")

    async def _teardown(self) -> None:
        if self._discovery is not None:
            await self._discovery.stop()
        await self._bus.stop()
        if self._owns_client and self._client is not None:
            await self._client.close()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, event_type: type, handler: Callable[[Any], Any]) -> Subscription:
        """
        Register a handler for StandardizedEvent, FactoryEvent or ListenerError.

        Returns:
            Subscription handle; after cancel() the handler is never called again
        """
        return self._bus.subscribe(event_type, handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._bus.unsubscribe(subscription)

    @property
    def bus(self) -> EventBus:
        return self._bus

    async def _publish_factory_event(self, event: FactoryEvent) -> None:
        await self._bus.publish(event)

    async def _handle_pool_event(self, pool: PoolInfo, envelope: RawEventEnvelope) -> None:
        try:
            event = self.normalizer.normalize(pool, envelope)
        except Exception as e:
            logger.warning(
                f"Failed to normalize {envelope.event_name} on {pool.address}: {e}",
                extra={"pool": pool.address, "protocol": pool.protocol.value},
            )
            await self._report_error(f"Normalization failed for {envelope.event_name} on {pool.address}", e)
            return

        await self._bus.publish(event)

    async def _report_error(self, context: str, cause: BaseException) -> None:
        chain_id = self.config.chain_id if self.config else None
        await self._bus.publish(ListenerError(context=context, cause=cause, chain_id=chain_id))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_known_pools(self) -> List[PoolInfo]:
        """Snapshots of every known pool."""
        return self._pools.snapshots()

    def get_pool_info(self, address: str) -> Optional[PoolInfo]:
        """Snapshot of a pool, or None when unknown. Case-insensitive."""
        return self._pools.get(address)

    @property
    def active_protocols(self) -> List[str]:
        return list(self._active_protocols)

    @property
    def discovery(self) -> Optional[PoolDiscovery]:
        return self._discovery

    async def wait_until_idle(self) -> None:
        """Wait for pending pool attachments and queued notifications."""
        if self._discovery is not None:
            await self._discovery.wait_for_attachments()
        await self._bus.join()

    async def health_check(self) -> dict:
        health = await super().health_check()
        health["details"] = {
            "chain_id": self.config.chain_id if self.config else None,
            "active_protocols": self.active_protocols,
            "known_pools": len(self._pools),
            "subscriptions": self._discovery.subscription_count if self._discovery else 0,
            "event_bus": self._bus.get_stats(),
        }
        return health

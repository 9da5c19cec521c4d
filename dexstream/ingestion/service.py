"""
Ingestion Service - runs the whole pipeline.

Owns the event store, the ingestion pipeline and one ProtocolEventListener
per configured chain. Listener notifications are routed into the pipeline:

    listeners --StandardizedEvent/FactoryEvent--> pipeline --batches--> store

Startup order: store, pipeline timer, listeners.
Shutdown order: listeners, final flush, store.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import AppConfig, ListenerConfig
from ..core.base import Component
from ..listener.listener import ProtocolEventListener
from ..models import FactoryEvent, ListenerError, PoolInfo, StandardizedEvent
from ..storage.duckdb_store import DuckDBEventStore
from ..storage.gateway import StorageGateway
from .pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

ListenerFactory = Callable[[ListenerConfig], ProtocolEventListener]


class IngestionService(Component):
    """
    Multi-chain ingestion into the analytical store.

    Usage:
        service = IngestionService(get_app_config())
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[StorageGateway] = None,
        listener_factory: Optional[ListenerFactory] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Application configuration (defaults are used when omitted)
            store: Storage gateway; a DuckDBEventStore on the configured path by default
            listener_factory: Builds a listener for one chain configuration
        """
        super().__init__(name="ingestion")
        self.config = config or AppConfig()
        self.store = store or DuckDBEventStore(self.config.storage.database_path)
        self._listener_factory = listener_factory or (lambda cfg: ProtocolEventListener(cfg))

        self.pipeline = IngestionPipeline(
            self.store,
            batch_size=self.config.ingestion.batch_size,
            flush_interval=self.config.ingestion.flush_interval_seconds,
        )
        self.listeners: List[ProtocolEventListener] = []
        self.errors_reported = 0

    async def start(self) -> None:
        """
        Connect storage, start batching and start every listener.

        Raises:
            AlreadyRunningError: If the service is already running
        """
        self._ensure_not_running()
        logger.info("Starting data ingestion service...")

        await self.store.connect()
        await self.store.initialize_schema()
        await self.pipeline.start()

        try:
            for listener_config in self.config.listeners:
                listener = self._listener_factory(listener_config)
                listener.subscribe(StandardizedEvent, self.pipeline.add_event)
                listener.subscribe(FactoryEvent, self._on_factory_event)
                listener.subscribe(ListenerError, self._on_listener_error)
                self.listeners.append(listener)
                await listener.start(listener_config)
        except Exception as e:
            logger.error(f"Failed to start data ingestion service: {e}")
            await self._shutdown()
            raise

        self._mark_started()
        logger.info(f"Data ingestion service started ({len(self.listeners)} listeners)")

    async def stop(self) -> None:
        """Stop listeners, flush buffers and close storage. No-op when stopped."""
        if not self.is_running:
            return

        logger.info("Stopping data ingestion service...")
        await self._shutdown()
        self._mark_stopped()
        logger.info("Data ingestion service stopped")

    async def _shutdown(self) -> None:
        for listener in self.listeners:
            try:
                await listener.stop()
            except Exception as e:
                logger.error(f"Error stopping {listener.name}: {e}")
        self.listeners = []

        await self.pipeline.stop()
        await self.store.close()

    # ------------------------------------------------------------------
    # Notification handlers
    # ------------------------------------------------------------------

    def _on_factory_event(self, event: FactoryEvent) -> None:
        logger.info(
            f"Factory event: {event.protocol.value} {event.event_type.value} {event.pair_address}",
            extra={"protocol": event.protocol.value, "pool": event.pair_address},
        )
        self.pipeline.add_factory_event(event)

    def _on_listener_error(self, error: ListenerError) -> None:
        self.errors_reported += 1
        logger.error(f"Listener error on chain {error.chain_id}: {error}", extra={"chain_id": error.chain_id})

    # ------------------------------------------------------------------
    # Monitoring & queries
    # ------------------------------------------------------------------

    def get_buffer_status(self) -> Dict[str, int]:
        return self.pipeline.get_buffer_status()

    async def get_event_count(self) -> int:
        return await self.store.get_event_count()

    async def get_events_by_protocol(self, protocol: str, limit: int = 100) -> List[Dict[str, Any]]:
        return await self.store.get_events_by_protocol(protocol, limit)

    async def get_event_stats(self) -> List[Dict[str, Any]]:
        return await self.store.get_event_stats()

    def get_known_pools(self) -> List[PoolInfo]:
        pools = []
        for listener in self.listeners:
            pools.extend(listener.get_known_pools())
        return pools

    async def health_check(self) -> dict:
        health = await super().health_check()
        health["details"] = {
            "buffers": self.get_buffer_status(),
            "events_written": self.pipeline.events_written,
            "factory_events_written": self.pipeline.factory_events_written,
            "failed_flushes": self.pipeline.failed_flushes,
            "errors_reported": self.errors_reported,
            "listeners": [await listener.health_check() for listener in self.listeners],
        }
        return health

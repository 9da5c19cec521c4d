"""
Buffered Ingestion Pipeline.

Two independent buffers (standardized events and factory events) are
flushed to a StorageGateway when either:
- a buffer reaches batch_size (flushed in a background task), or
- the periodic timer fires (every flush_interval seconds).

Flush: swap the buffer out, write items one by one, and on the first
failure put the whole snapshot back at the front of the buffer. Failures
are logged, never raised; the next flush retries the same events first.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..models import FactoryEvent, StandardizedEvent
from ..storage.gateway import StorageGateway
from ..utils.logger import get_performance_logger
from .buffer import EventBuffer

logger = logging.getLogger(__name__)
perf = get_performance_logger(__name__)


class IngestionPipeline:
    """
    Batches events in memory and writes them to storage.

    Usage:
        pipeline = IngestionPipeline(store, batch_size=100, flush_interval=5.0)
        await pipeline.start()
        pipeline.add_event(event)
        ...
        await pipeline.stop()   # final best-effort flush
    """

    def __init__(
        self,
        gateway: StorageGateway,
        batch_size: int = 100,
        flush_interval: float = 5.0,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")

        self.gateway = gateway
        self.batch_size = batch_size
        self.flush_interval = flush_interval

        self.events: EventBuffer[StandardizedEvent] = EventBuffer("events")
        self.factory_events: EventBuffer[FactoryEvent] = EventBuffer("factoryEvents")

        self._timer_task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self._flush_tasks: Set[asyncio.Task] = set()
        self._threshold_pending: Set[str] = set()

        self.events_written = 0
        self.factory_events_written = 0
        self.failed_flushes = 0

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def add_event(self, event: StandardizedEvent) -> None:
        """Buffer a standardized event; schedules a flush at the threshold."""
        if self.events.append(event) >= self.batch_size:
            self._schedule_flush(self.events, self.gateway.insert_event)

    def add_factory_event(self, event: FactoryEvent) -> None:
        """Buffer a factory event; schedules a flush at the threshold."""
        if self.factory_events.append(event) >= self.batch_size:
            self._schedule_flush(self.factory_events, self.gateway.insert_factory_event)

    def _schedule_flush(self, buffer: EventBuffer, write: Callable[[Any], Awaitable[None]]) -> None:
        if buffer.name in self._threshold_pending:
            return
        self._threshold_pending.add(buffer.name)

        async def run():
            self._threshold_pending.discard(buffer.name)
            await self._flush(buffer, write)

        task = asyncio.create_task(run())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def wait_for_flushes(self) -> None:
        """Wait for every scheduled threshold flush to finish."""
        while self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    async def flush_events(self) -> int:
        return await self._flush(self.events, self.gateway.insert_event)

    async def flush_factory_events(self) -> int:
        return await self._flush(self.factory_events, self.gateway.insert_factory_event)

    async def flush(self) -> Dict[str, int]:
        """Flush both buffers. Returns the number of items written per buffer."""
        return {
            "events": await self.flush_events(),
            "factoryEvents": await self.flush_factory_events(),
        }

    async def _flush(self, buffer: EventBuffer, write: Callable[[Any], Awaitable[None]]) -> int:
        async with buffer.lock:
            batch = buffer.swap()
            if not batch:
                return 0

            with perf.timer(f"flush {buffer.name}", batch_size=len(batch)):
                for item in batch:
                    try:
                        await write(item)
                    except asyncio.CancelledError:
                        buffer.requeue_front(batch)
                        logger.warning(f"Flush of {len(batch)} {buffer.name} cancelled, re-queued")
                        raise
                    except Exception as e:
                        buffer.requeue_front(batch)
                        self.failed_flushes += 1
                        logger.warning(
                            f"Flush of {len(batch)} {buffer.name} failed, re-queued "
                            f"({len(buffer)} buffered): {e}"
                        )
                        return 0

            if buffer is self.events:
                self.events_written += len(batch)
            else:
                self.factory_events_written += len(batch)

            logger.debug(f"Flushed {len(batch)} {buffer.name}")
            return len(batch)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic flush timer."""
        if self._timer_task is not None:
            return
        self._stopping.clear()
        self._timer_task = asyncio.create_task(self._flush_periodically())

    async def _flush_periodically(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.flush_interval)
                return
            except asyncio.TimeoutError:
                pass

            try:
                await self.flush()
            except Exception as e:
                logger.error(f"Periodic flush error: {e}")

    async def stop(self) -> None:
        """
        Stop the timer and run one final best-effort flush of both buffers.

        A timer flush already writing is allowed to finish rather than being
        cancelled mid-batch.
        """
        if self._timer_task is not None:
            self._stopping.set()
            await self._timer_task
            self._timer_task = None

        await self.wait_for_flushes()
        written = await self.flush()

        remaining = self.get_buffer_status()
        if remaining["events"] or remaining["factoryEvents"]:
            logger.warning(f"Final flush left events unwritten: {remaining}")
        else:
            logger.info(f"Final flush complete: {written}")

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None

    def get_buffer_status(self) -> Dict[str, int]:
        return {"events": len(self.events), "factoryEvents": len(self.factory_events)}

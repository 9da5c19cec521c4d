"""
Blockchain client used by the listener.

The listener needs three things from a node: subscribe to a contract's
events, unsubscribe, and call a read-only function. ChainClient defines that
contract; Web3ChainClient implements it with web3.py's AsyncWeb3.

Transport:
- With a WebSocket endpoint: eth_subscribe("logs") per contract, one reader
  task routing payloads by subscription id.
- Without one: eth_getLogs polling over HTTP, one task per subscription.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from web3 import AsyncWeb3, Web3
from web3.providers import AsyncHTTPProvider, WebSocketProvider

from ..core.errors import ChainClientError
from ..protocols.registry import EventShape
from .envelope import RawEventEnvelope, to_hex

logger = logging.getLogger(__name__)

EventHandler = Callable[[RawEventEnvelope], Awaitable[None]]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque handle for one contract subscription."""
    id: str
    contract_address: str
    event_names: tuple


class ChainClient(ABC):
    """Contract between the listener and a blockchain node."""

    async def connect(self) -> None:
        """Open connections. Default: nothing to do."""

    async def close(self) -> None:
        """Close connections. Default: nothing to do."""

    @abstractmethod
    async def subscribe(
        self,
        contract_address: str,
        shape: EventShape,
        handler: EventHandler,
    ) -> SubscriptionHandle:
        """Deliver every event in ``shape`` emitted by the contract to ``handler``."""

    @abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop deliveries for the handle. Must be idempotent."""

    @abstractmethod
    async def call(self, contract_address: str, function_abi: dict) -> Any:
        """Call a no-argument view function and return its decoded result."""


# ============================================================================
# web3.py implementation
# ============================================================================

@dataclass
class _Route:
    handle: SubscriptionHandle
    handler: EventHandler
    contract: Any
    topics: Dict[str, str]
    poll_task: Optional[asyncio.Task] = field(default=None, repr=False)


class Web3ChainClient(ChainClient):
    """
    AsyncWeb3-backed chain client.

    Usage:
        client = Web3ChainClient(rpc_endpoint="https://...", ws_endpoint="wss://...")
        await client.connect()
        handle = await client.subscribe(pool_address, shape, handler)
        symbol = await client.call(token_address, ERC20_SYMBOL_FUNCTION)
        await client.close()
    """

    def __init__(
        self,
        rpc_endpoint: Optional[str],
        ws_endpoint: Optional[str] = None,
        poll_interval: float = 2.0,
        max_block_range: int = 100,
        connect_timeout: float = 10.0,
    ):
        if not rpc_endpoint and not ws_endpoint:
            raise ChainClientError("An RPC or WebSocket endpoint is required")

        self.rpc_endpoint = rpc_endpoint
        self.ws_endpoint = ws_endpoint
        self.poll_interval = poll_interval
        self.max_block_range = max_block_range
        self.connect_timeout = connect_timeout

        self._http: Optional[AsyncWeb3] = None
        self._ws: Optional[AsyncWeb3] = None
        self._routes: Dict[str, _Route] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._poll_ids = itertools.count(1)

    @property
    def _reader(self) -> AsyncWeb3:
        w3 = self._http or self._ws
        if w3 is None:
            raise ChainClientError("Chain client is not connected")
        return w3

    async def connect(self) -> None:
        """Connect HTTP and/or WebSocket providers."""
        if self.rpc_endpoint:
            self._http = AsyncWeb3(AsyncHTTPProvider(self.rpc_endpoint))

        if self.ws_endpoint:
            logger.info(f"Connecting to: {self.ws_endpoint[:50]}...")
            self._ws = AsyncWeb3(WebSocketProvider(self.ws_endpoint))
            try:
                await asyncio.wait_for(self._ws.provider.connect(), timeout=self.connect_timeout)
            except asyncio.TimeoutError:
                raise ChainClientError(
                    f"WebSocket connection timed out after {self.connect_timeout} seconds"
                )
            except Exception as e:
                raise ChainClientError(f"Failed to connect WebSocket provider: {e}") from e

            if not await self._ws.is_connected():
                raise ChainClientError("Failed to connect to WebSocket endpoint")

            self._reader_task = asyncio.create_task(self._read_subscriptions())
            logger.info("✓ Connected via WebSocket")
        else:
            logger.info("No WebSocket endpoint configured, using eth_getLogs polling")

    async def close(self) -> None:
        """Cancel every subscription task and disconnect providers."""
        for route in list(self._routes.values()):
            if route.poll_task:
                route.poll_task.cancel()
        self._routes.clear()

        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        for w3 in (self._ws, self._http):
            if w3 and hasattr(w3.provider, "disconnect"):
                try:
                    await w3.provider.disconnect()
                except Exception as e:
                    logger.debug(f"Error disconnecting provider: {e}")

        self._ws = None
        self._http = None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        contract_address: str,
        shape: EventShape,
        handler: EventHandler,
    ) -> SubscriptionHandle:
        w3 = self._ws or self._reader
        checksum_address = Web3.to_checksum_address(contract_address)
        contract = w3.eth.contract(address=checksum_address, abi=shape.abi)
        topics = {
            to_hex(Web3.keccak(text=event.signature)).lower(): event.name
            for event in shape.events
        }
        filter_params = {"address": checksum_address, "topics": [list(topics)]}

        if self._ws:
            subscription_id = await self._ws.eth.subscribe("logs", filter_params)
            handle = SubscriptionHandle(
                id=str(subscription_id),
                contract_address=checksum_address,
                event_names=tuple(shape.names),
            )
            self._routes[handle.id] = _Route(handle, handler, contract, topics)
        else:
            handle = SubscriptionHandle(
                id=f"poll-{next(self._poll_ids)}",
                contract_address=checksum_address,
                event_names=tuple(shape.names),
            )
            route = _Route(handle, handler, contract, topics)
            self._routes[handle.id] = route
            route.poll_task = asyncio.create_task(self._poll_logs(route, filter_params))

        logger.debug(f"Subscribed to {', '.join(shape.names)} on {checksum_address} ({handle.id})")
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        # Drop the route first so payloads already in flight are discarded
        route = self._routes.pop(handle.id, None)
        if route is None:
            return

        if route.poll_task:
            route.poll_task.cancel()
            return

        if self._ws:
            try:
                await self._ws.eth.unsubscribe(handle.id)
            except Exception as e:
                logger.warning(f"Failed to unsubscribe {handle.id}: {e}")

    async def _read_subscriptions(self) -> None:
        """Route WebSocket subscription payloads to their handlers."""
        try:
            async for payload in self._ws.socket.process_subscriptions():
                route = self._routes.get(str(payload.get("subscription")))
                if route is None:
                    continue
                await self._deliver(route, payload["result"])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"WebSocket subscription reader stopped: {e}")

    async def _poll_logs(self, route: _Route, filter_params: Dict[str, Any]) -> None:
        """Poll eth_getLogs for new blocks, at most max_block_range blocks per request."""
        w3 = self._reader
        next_block = None

        while route.handle.id in self._routes:
            try:
                latest = await w3.eth.block_number
                if next_block is None:
                    next_block = latest + 1
                elif latest >= next_block:
                    to_block = min(latest, next_block + self.max_block_range - 1)
                    logs = await w3.eth.get_logs({
                        **filter_params,
                        "fromBlock": next_block,
                        "toBlock": to_block,
                    })
                    for log in logs:
                        if route.handle.id not in self._routes:
                            return
                        await self._deliver(route, log)
                    next_block = to_block + 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Log polling failed for {route.handle.contract_address}: {e}")

            await asyncio.sleep(self.poll_interval)

    async def _deliver(self, route: _Route, log: Any) -> None:
        try:
            topic0 = to_hex(log["topics"][0]).lower()
        except (KeyError, IndexError, TypeError):
            logger.debug(f"Ignoring log without topics from {route.handle.contract_address}")
            return

        event_name = route.topics.get(topic0)
        if event_name is None:
            return

        try:
            record = getattr(route.contract.events, event_name)().process_log(log)
        except Exception as e:
            logger.warning(
                f"Failed to decode {event_name} from {route.handle.contract_address}: {e}"
            )
            return

        envelope = RawEventEnvelope(
            event_name=event_name,
            args=dict(record["args"]),
            record=record,
            log=log,
            address=route.handle.contract_address,
        )

        try:
            await route.handler(envelope)
        except Exception as e:
            logger.error(f"Error in {event_name} handler for {route.handle.contract_address}: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def call(self, contract_address: str, function_abi: dict) -> Any:
        w3 = self._reader
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=[function_abi],
        )
        function = getattr(contract.functions, function_abi["name"])
        return await function().call()

    @property
    def subscription_count(self) -> int:
        return len(self._routes)

    def subscription_ids(self) -> List[str]:
        return list(self._routes)

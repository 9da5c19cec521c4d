"""
Data models for normalized DEX events.

Every protocol-specific event is converted into a StandardizedEvent. The
``to_dict()`` output of these classes is the interchange shape handed to
storage: field names are camelCase and optional fields that are not set are
omitted entirely.

All raw token amounts, reserves, prices and liquidity values are carried as
decimal strings so 256-bit integers are never truncated.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Union


# ============================================================================
# Enums
# ============================================================================

class ProtocolType(str, Enum):
    """Supported protocol identifiers."""
    UNISWAP_V2 = "uniswap-v2"
    UNISWAP_V3 = "uniswap-v3"
    PANCAKESWAP_V2 = "pancakeswap-v2"


class EventType(str, Enum):
    """Normalized pool event types."""
    SWAP = "swap"
    MINT = "mint"
    BURN = "burn"
    SYNC = "sync"
    INITIALIZE = "initialize"


class FactoryEventType(str, Enum):
    """Factory creation event types."""
    PAIR_CREATED = "pair_created"
    POOL_CREATED = "pool_created"


def _value(item: Any) -> Any:
    return item.value if isinstance(item, Enum) else item


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset optional fields."""
    return {key: value for key, value in data.items() if value is not None}


def derive_event_id(transaction_hash: str, log_index: int, event_type: Union[EventType, str]) -> str:
    """
    Deterministic event identifier.

    Re-processing the same chain log always yields the same id, which lets
    the store ignore duplicates.
    """
    return f"{transaction_hash}-{log_index}-{_value(event_type)}"


# ============================================================================
# Token & Pool
# ============================================================================

@dataclass(frozen=True)
class TokenInfo:
    """ERC-20 token metadata."""
    address: str
    symbol: str
    decimals: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "name": self.name,
        }


@dataclass
class PoolInfo:
    """
    A discovered pool/pair.

    Only ``is_active`` changes after creation (set False on teardown).
    """
    address: str
    protocol: ProtocolType
    version: str
    token0: TokenInfo
    token1: TokenInfo
    created_at: int
    fee: Optional[int] = None
    tick_spacing: Optional[int] = None
    is_active: bool = True

    def snapshot(self) -> "PoolInfo":
        """Return a detached copy for read-only consumers."""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "address": self.address,
            "protocol": _value(self.protocol),
            "version": self.version,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "fee": self.fee,
            "tickSpacing": self.tick_spacing,
            "createdAt": self.created_at,
            "isActive": self.is_active,
        })


@dataclass(frozen=True)
class FactoryEvent:
    """A pool/pair creation announced by a factory contract."""
    protocol: ProtocolType
    event_type: FactoryEventType
    token0: str
    token1: str
    pair_address: str
    block_number: int
    transaction_hash: str
    fee: Optional[int] = None
    tick_spacing: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "protocol": _value(self.protocol),
            "eventType": _value(self.event_type),
            "token0": self.token0,
            "token1": self.token1,
            "pairAddress": self.pair_address,
            "fee": self.fee,
            "tickSpacing": self.tick_spacing,
            "blockNumber": self.block_number,
            "transactionHash": self.transaction_hash,
        })


# ============================================================================
# Event Payloads
# ============================================================================

@dataclass(frozen=True)
class SwapEventData:
    """Swap amounts in V2 layout (V3 deltas are split into in/out)."""
    sender: str
    recipient: str
    amount0_in: str
    amount1_in: str
    amount0_out: str
    amount1_out: str
    price_impact: Optional[str] = None
    fee: Optional[str] = None
    tick: Optional[int] = None
    sqrt_price_x96: Optional[str] = None
    type: str = field(default="swap", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "type": self.type,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount0In": self.amount0_in,
            "amount1In": self.amount1_in,
            "amount0Out": self.amount0_out,
            "amount1Out": self.amount1_out,
            "priceImpact": self.price_impact,
            "fee": self.fee,
            "tick": self.tick,
            "sqrtPriceX96": self.sqrt_price_x96,
        })


@dataclass(frozen=True)
class LiquidityEventData:
    """Mint or burn. V2 events report liquidity as the placeholder "0"."""
    type: str
    sender: str
    owner: str
    amount0: str
    amount1: str
    liquidity: str
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "type": self.type,
            "sender": self.sender,
            "owner": self.owner,
            "amount0": self.amount0,
            "amount1": self.amount1,
            "liquidity": self.liquidity,
            "tickLower": self.tick_lower,
            "tickUpper": self.tick_upper,
        })


@dataclass(frozen=True)
class SyncEventData:
    """Reserve snapshot."""
    reserve0: str
    reserve1: str
    type: str = field(default="sync", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "reserve0": self.reserve0, "reserve1": self.reserve1}


@dataclass(frozen=True)
class InitializeEventData:
    """V3 pool initialization price."""
    sqrt_price_x96: str
    tick: int
    type: str = field(default="initialize", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "sqrtPriceX96": self.sqrt_price_x96, "tick": self.tick}


EventData = Union[SwapEventData, LiquidityEventData, SyncEventData, InitializeEventData]


# ============================================================================
# Standardized Event
# ============================================================================

@dataclass(frozen=True)
class StandardizedEvent:
    """The canonical output unit of the normalization engine."""
    id: str
    protocol: ProtocolType
    version: str
    event_type: EventType
    timestamp: int
    block_number: int
    transaction_hash: str
    log_index: int
    pool_address: str
    token0: TokenInfo
    token1: TokenInfo
    data: EventData
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    fee: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "protocol": _value(self.protocol),
            "version": self.version,
            "eventType": _value(self.event_type),
            "timestamp": self.timestamp,
            "blockNumber": self.block_number,
            "transactionHash": self.transaction_hash,
            "logIndex": self.log_index,
            "poolAddress": self.pool_address,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "data": self.data.to_dict(),
            "gasUsed": self.gas_used,
            "gasPrice": self.gas_price,
            "fee": self.fee,
        })


# ============================================================================
# Listener Notifications
# ============================================================================

@dataclass(frozen=True)
class ListenerError:
    """Error notification published by a listener."""
    context: str
    cause: BaseException
    chain_id: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.context}: {self.cause}"

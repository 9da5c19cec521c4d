"""
Event Normalization Engine.

Converts a decoded pool event into exactly one StandardizedEvent. Decoding
rules are keyed by (protocol family, event name):

- V2 Swap: the four unsigned in/out amounts pass through.
- V3 Swap: each signed delta is split; negative means the pool received the
  token (an "in"), non-negative means the pool sent it (an "out").
- V2 Mint/Burn: no liquidity quantity in the event, reported as "0".
- V3 Mint/Burn: tick range and liquidity come from the event.
- Sync and Initialize: pass-through.

Every amount is rendered as a decimal string.
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..chain.envelope import RawEventEnvelope, extract_metadata
from ..core.errors import UnsupportedEventError
from ..models import (
    EventData,
    EventType,
    InitializeEventData,
    LiquidityEventData,
    PoolInfo,
    StandardizedEvent,
    SwapEventData,
    SyncEventData,
    derive_event_id,
)
from ..protocols.registry import ProtocolFamily, ProtocolRegistry

logger = logging.getLogger(__name__)


def amount(value: Any) -> str:
    """Render an integer quantity as a decimal string."""
    return str(int(value))


def split_signed_delta(delta: Any) -> Tuple[str, str]:
    """
    Split a V3 signed delta into (in, out) decimal strings.

    >>> split_signed_delta(-100)
    ('100', '0')
    >>> split_signed_delta(95)
    ('0', '95')
    """
    value = int(delta)
    if value < 0:
        return str(-value), "0"
    return "0", str(value)


# ============================================================================
# Decoding Rules
# ============================================================================

Rule = Callable[[Mapping[str, Any]], EventData]


def _v2_swap(args: Mapping[str, Any]) -> SwapEventData:
    return SwapEventData(
        sender=args["sender"],
        recipient=args["to"],
        amount0_in=amount(args["amount0In"]),
        amount1_in=amount(args["amount1In"]),
        amount0_out=amount(args["amount0Out"]),
        amount1_out=amount(args["amount1Out"]),
    )


def _v2_liquidity(event_type: EventType) -> Rule:
    def rule(args: Mapping[str, Any]) -> LiquidityEventData:
        return LiquidityEventData(
            type=event_type.value,
            sender=args["sender"],
            owner=args["sender"],
            amount0=amount(args["amount0"]),
            amount1=amount(args["amount1"]),
            liquidity="0",
        )
    return rule


def _v2_sync(args: Mapping[str, Any]) -> SyncEventData:
    return SyncEventData(reserve0=amount(args["reserve0"]), reserve1=amount(args["reserve1"]))


def _v3_swap(args: Mapping[str, Any]) -> SwapEventData:
    amount0_in, amount0_out = split_signed_delta(args["amount0"])
    amount1_in, amount1_out = split_signed_delta(args["amount1"])
    return SwapEventData(
        sender=args["sender"],
        recipient=args["recipient"],
        amount0_in=amount0_in,
        amount1_in=amount1_in,
        amount0_out=amount0_out,
        amount1_out=amount1_out,
        tick=int(args["tick"]),
        sqrt_price_x96=amount(args["sqrtPriceX96"]),
    )


def _v3_mint(args: Mapping[str, Any]) -> LiquidityEventData:
    return LiquidityEventData(
        type=EventType.MINT.value,
        sender=args["sender"],
        owner=args["owner"],
        amount0=amount(args["amount0"]),
        amount1=amount(args["amount1"]),
        liquidity=amount(args["amount"]),
        tick_lower=int(args["tickLower"]),
        tick_upper=int(args["tickUpper"]),
    )


def _v3_burn(args: Mapping[str, Any]) -> LiquidityEventData:
    # Burn carries no sender; the position owner is the caller
    return LiquidityEventData(
        type=EventType.BURN.value,
        sender=args["owner"],
        owner=args["owner"],
        amount0=amount(args["amount0"]),
        amount1=amount(args["amount1"]),
        liquidity=amount(args["amount"]),
        tick_lower=int(args["tickLower"]),
        tick_upper=int(args["tickUpper"]),
    )


def _v3_initialize(args: Mapping[str, Any]) -> InitializeEventData:
    return InitializeEventData(sqrt_price_x96=amount(args["sqrtPriceX96"]), tick=int(args["tick"]))


RULES: Dict[Tuple[ProtocolFamily, str], Tuple[EventType, Rule]] = {
    (ProtocolFamily.V2, "Swap"): (EventType.SWAP, _v2_swap),
    (ProtocolFamily.V2, "Mint"): (EventType.MINT, _v2_liquidity(EventType.MINT)),
    (ProtocolFamily.V2, "Burn"): (EventType.BURN, _v2_liquidity(EventType.BURN)),
    (ProtocolFamily.V2, "Sync"): (EventType.SYNC, _v2_sync),
    (ProtocolFamily.V3, "Swap"): (EventType.SWAP, _v3_swap),
    (ProtocolFamily.V3, "Mint"): (EventType.MINT, _v3_mint),
    (ProtocolFamily.V3, "Burn"): (EventType.BURN, _v3_burn),
    (ProtocolFamily.V3, "Initialize"): (EventType.INITIALIZE, _v3_initialize),
}


# ============================================================================
# Normalizer
# ============================================================================

class EventNormalizer:
    """
    Stateless converter from raw pool events to StandardizedEvents.

    Usage:
        normalizer = EventNormalizer()
        event = normalizer.normalize(pool, envelope)
    """

    def __init__(
        self,
        protocols: Optional[ProtocolRegistry] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.protocols = protocols or ProtocolRegistry()
        self._clock = clock or (lambda: int(time.time() * 1000))

    def normalize(self, pool: PoolInfo, envelope: RawEventEnvelope) -> StandardizedEvent:
        """
        Build the StandardizedEvent for one raw pool event.

        Raises:
            UnsupportedEventError: If the pool's protocol family has no rule for the event
        """
        family = self.protocols.family(pool.protocol)
        entry = RULES.get((family, envelope.event_name))
        if entry is None:
            raise UnsupportedEventError(
                f"No {family.value} rule for event {envelope.event_name} on pool {pool.address}"
            )

        event_type, rule = entry
        data = rule(envelope.args)

        now_ms = self._clock()
        metadata = extract_metadata(envelope, now_ms=now_ms)
        if metadata.synthetic:
            logger.debug(
                f"Placeholder metadata used for {envelope.event_name} on {pool.address}",
                extra={"pool": pool.address, "event_type": event_type.value},
            )

        return StandardizedEvent(
            id=derive_event_id(metadata.transaction_hash, metadata.log_index, event_type),
            protocol=pool.protocol,
            version=pool.version,
            event_type=event_type,
            timestamp=now_ms,
            block_number=metadata.block_number,
            transaction_hash=metadata.transaction_hash,
            log_index=metadata.log_index,
            pool_address=pool.address,
            token0=pool.token0,
            token1=pool.token1,
            data=data,
            fee=str(pool.fee) if family is ProtocolFamily.V3 and pool.fee is not None else None,
        )

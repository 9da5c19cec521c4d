"""
Raw event envelope and metadata extraction.

The chain client wraps every delivered log in a RawEventEnvelope. Different
delivery paths expose transaction hash, block number and log index at
different places (the decoded record, the raw log, or a log nested inside a
wrapper payload), so extraction walks an ordered list of extractor functions
and falls back to synthetic placeholders when none of them has the field.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional


def to_hex(value: Any) -> str:
    """Render bytes / HexBytes / str as a 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return str(value)


def to_int(value: Any) -> Optional[int]:
    """Convert ints and hex/decimal strings; None when not convertible."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class RawEventEnvelope:
    """
    A decoded contract event as delivered by the chain client.

    Attributes:
        event_name: ABI event name (e.g. "Swap", "PairCreated")
        args: Decoded event arguments by ABI input name
        record: Decoded event record (web3 EventData), if available
        log: Raw log mapping as received from the node, if available
        address: Emitting contract address
    """
    event_name: str
    args: Mapping[str, Any] = field(default_factory=dict)
    record: Optional[Mapping[str, Any]] = None
    log: Optional[Mapping[str, Any]] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class EventMetadata:
    """Identifying fields of a log."""
    transaction_hash: str
    block_number: int
    log_index: int
    synthetic: bool = False


# ============================================================================
# Extractors
# ============================================================================

Extractor = Callable[[RawEventEnvelope, str], Any]


def _from_record(envelope: RawEventEnvelope, key: str) -> Any:
    if envelope.record is None:
        return None
    return envelope.record.get(key)


def _from_log(envelope: RawEventEnvelope, key: str) -> Any:
    if envelope.log is None:
        return None
    return envelope.log.get(key)


def _from_nested_log(envelope: RawEventEnvelope, key: str) -> Any:
    for container in (envelope.log, envelope.record):
        if container is None:
            continue
        nested = container.get("log")
        if isinstance(nested, Mapping):
            value = nested.get(key)
            if value is not None:
                return value
    return None


EXTRACTORS: List[Extractor] = [_from_record, _from_log, _from_nested_log]

FIELD_KEYS: Dict[str, tuple] = {
    "transaction_hash": ("transactionHash", "transaction_hash", "hash"),
    "block_number": ("blockNumber", "block_number"),
    "log_index": ("logIndex", "log_index", "index"),
}


def _first(envelope: RawEventEnvelope, field_name: str) -> Any:
    for extractor in EXTRACTORS:
        for key in FIELD_KEYS[field_name]:
            value = extractor(envelope, key)
            if value is not None:
                return value
    return None


def synthetic_transaction_hash(now_ms: Optional[int] = None) -> str:
    """Placeholder hash derived from the current millisecond timestamp."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return "0x" + format(now_ms, "064x")


def extract_metadata(envelope: RawEventEnvelope, now_ms: Optional[int] = None) -> EventMetadata:
    """
    Extract transaction hash, block number and log index. Never raises.

    Missing fields are replaced by placeholders: a timestamp-derived
    transaction hash, block 0 and log index 0.
    """
    synthetic = False

    raw_hash = _first(envelope, "transaction_hash")
    if raw_hash is None or raw_hash == "":
        transaction_hash = synthetic_transaction_hash(now_ms)
        synthetic = True
    else:
        transaction_hash = to_hex(raw_hash)

    block_number = to_int(_first(envelope, "block_number"))
    if block_number is None:
        block_number = 0
        synthetic = True

    log_index = to_int(_first(envelope, "log_index"))
    if log_index is None:
        log_index = 0
        synthetic = True

    return EventMetadata(
        transaction_hash=transaction_hash,
        block_number=block_number,
        log_index=log_index,
        synthetic=synthetic,
    )

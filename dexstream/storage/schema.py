"""
DuckDB schema and row mapping for protocol events.

Standardized events and factory events share one wide table. Token metadata
is denormalized into token0_*/token1_* columns and the protocol-specific
payload is stored as JSON in event_data.
"""

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import duckdb

from ..models import FactoryEvent, StandardizedEvent, _value

logger = logging.getLogger(__name__)


PROTOCOL_EVENTS_TABLE = """
CREATE TABLE IF NOT EXISTS protocol_events (
    id VARCHAR PRIMARY KEY,
    protocol VARCHAR NOT NULL,
    version VARCHAR NOT NULL,
    event_type VARCHAR NOT NULL,
    timestamp BIGINT NOT NULL,              -- epoch milliseconds
    block_number BIGINT NOT NULL,
    transaction_hash VARCHAR NOT NULL,
    log_index INTEGER NOT NULL,
    pool_address VARCHAR NOT NULL,
    token0_address VARCHAR,
    token0_symbol VARCHAR,
    token0_decimals INTEGER,
    token0_name VARCHAR,
    token1_address VARCHAR,
    token1_symbol VARCHAR,
    token1_decimals INTEGER,
    token1_name VARCHAR,
    event_data JSON,
    gas_used VARCHAR,
    gas_price VARCHAR,
    fee VARCHAR
);
"""

PROTOCOL_EVENTS_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_protocol_events_protocol ON protocol_events(protocol);",
    "CREATE INDEX IF NOT EXISTS idx_protocol_events_pool ON protocol_events(pool_address);",
    "CREATE INDEX IF NOT EXISTS idx_protocol_events_timestamp ON protocol_events(timestamp);",
)

COLUMNS = (
    "id", "protocol", "version", "event_type", "timestamp", "block_number",
    "transaction_hash", "log_index", "pool_address",
    "token0_address", "token0_symbol", "token0_decimals", "token0_name",
    "token1_address", "token1_symbol", "token1_decimals", "token1_name",
    "event_data", "gas_used", "gas_price", "fee",
)

# Duplicate ids are ignored so re-processed chain events are stored once
INSERT_EVENT_SQL = (
    f"INSERT OR IGNORE INTO protocol_events ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in COLUMNS)})"
)


def create_all_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the protocol_events table and its indexes."""
    try:
        conn.execute(PROTOCOL_EVENTS_TABLE)
        for index_sql in PROTOCOL_EVENTS_INDEXES:
            conn.execute(index_sql)
        logger.debug("Created protocol_events table and indexes")
    except Exception as e:
        logger.error(f"Error creating tables: {e}")
        raise


# ============================================================================
# Row Mapping
# ============================================================================

def event_row(event: StandardizedEvent) -> Tuple[Any, ...]:
    return (
        event.id,
        _value(event.protocol),
        event.version,
        _value(event.event_type),
        event.timestamp,
        event.block_number,
        event.transaction_hash,
        event.log_index,
        event.pool_address,
        event.token0.address,
        event.token0.symbol,
        event.token0.decimals,
        event.token0.name,
        event.token1.address,
        event.token1.symbol,
        event.token1.decimals,
        event.token1.name,
        json.dumps(event.data.to_dict()),
        event.gas_used or "",
        event.gas_price or "",
        event.fee or "",
    )


def factory_event_id(event: FactoryEvent) -> str:
    return f"factory-{event.transaction_hash}-{event.pair_address}"


def factory_event_row(event: FactoryEvent, now_ms: Optional[int] = None) -> Tuple[Any, ...]:
    """
    Factory events carry token addresses only; token metadata columns get
    the unknown-token sentinel values.
    """
    protocol = _value(event.protocol)
    event_type = _value(event.event_type)
    return (
        factory_event_id(event),
        protocol,
        "v2" if "v2" in protocol else "v3",
        event_type,
        now_ms if now_ms is not None else int(time.time() * 1000),
        event.block_number,
        event.transaction_hash,
        0,
        event.pair_address,
        event.token0,
        "UNKNOWN",
        18,
        "Unknown Token",
        event.token1,
        "UNKNOWN",
        18,
        "Unknown Token",
        json.dumps({"type": event_type, "fee": event.fee, "tickSpacing": event.tick_spacing}),
        "",
        "",
        str(event.fee) if event.fee is not None else "",
    )


def row_to_dict(columns, row) -> Dict[str, Any]:
    """Map a result row to a dict, decoding event_data JSON."""
    record = dict(zip(columns, row))
    data = record.get("event_data")
    if isinstance(data, str):
        try:
            record["event_data"] = json.loads(data)
        except ValueError:
            pass
    return record

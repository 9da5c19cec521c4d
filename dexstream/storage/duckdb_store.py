"""
DuckDB Event Store - StorageGateway backed by a single DuckDB file.

DuckDB calls are blocking, so every operation runs in the default executor
under a threading lock that serializes access to the shared connection.

Example:
    store = DuckDBEventStore("data/dexstream.duckdb")
    await store.connect()
    await store.initialize_schema()
    await store.insert_event(event)
    print(await store.get_event_count())
    await store.close()
"""

import asyncio
import logging
import threading
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import duckdb

from ..core.errors import StorageError
from ..models import FactoryEvent, StandardizedEvent, _value
from .gateway import StorageGateway
from .schema import (
    INSERT_EVENT_SQL,
    create_all_tables,
    event_row,
    factory_event_row,
    row_to_dict,
)

logger = logging.getLogger(__name__)


class DuckDBEventStore(StorageGateway):
    """
    Protocol event store on DuckDB.

    Use ":memory:" as database_path for an in-process, non-persistent store.
    """

    def __init__(self, database_path: str = "data/dexstream.duckdb", read_only: bool = False):
        """
        Initialize the store.

        Args:
            database_path: DuckDB database file (or ":memory:")
            read_only: Open in read-only mode
        """
        self.database_path = str(database_path)
        self.read_only = read_only
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        await self._run(self._connect)

    def _connect(self) -> None:
        if self._conn is not None:
            return

        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = duckdb.connect(self.database_path, read_only=self.read_only)
        except Exception as e:
            logger.error(f"Error opening DuckDB database {self.database_path}: {e}")
            raise StorageError(f"Cannot open {self.database_path}: {e}") from e

        logger.info(f"Connected to DuckDB at {self.database_path} (read_only={self.read_only})")

    async def initialize_schema(self) -> None:
        await self._run(lambda: create_all_tables(self._connection()))
        logger.info("protocol_events schema ready")

    async def close(self) -> None:
        await self._run(self._close)

    def _close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
            logger.info("DuckDB connection closed")
        except Exception as e:
            logger.error(f"Error closing DuckDB connection: {e}")
        finally:
            self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_event(self, event: StandardizedEvent) -> None:
        await self._run(partial(self._execute, INSERT_EVENT_SQL, event_row(event)))

    async def insert_factory_event(self, event: FactoryEvent) -> None:
        await self._run(partial(self._execute, INSERT_EVENT_SQL, factory_event_row(event)))
        logger.debug(
            f"Inserted factory event {_value(event.event_type)} {event.pair_address}",
            extra={"protocol": _value(event.protocol), "pool": event.pair_address},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_event_count(self) -> int:
        rows = await self._run(partial(self._query, "SELECT COUNT(*) FROM protocol_events"))
        return int(rows[0][0])

    async def get_events_by_protocol(self, protocol: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent events of a protocol, newest first."""
        return await self._run(partial(
            self._query_dicts,
            "SELECT * FROM protocol_events WHERE protocol = ? ORDER BY timestamp DESC LIMIT ?",
            (_value(protocol), int(limit)),
        ))

    async def get_event_stats(self) -> List[Dict[str, Any]]:
        """Per protocol/event type counts, distinct pools and transactions, time range."""
        return await self._run(partial(
            self._query_dicts,
            """
            SELECT
                protocol,
                event_type,
                COUNT(*) AS count,
                COUNT(DISTINCT pool_address) AS unique_pools,
                COUNT(DISTINCT transaction_hash) AS unique_transactions,
                MIN(timestamp) AS first_event,
                MAX(timestamp) AS last_event
            FROM protocol_events
            GROUP BY protocol, event_type
            ORDER BY count DESC
            """,
        ))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise StorageError("Not connected to DuckDB")
        return self._conn

    def _execute(self, sql: str, params: tuple) -> None:
        try:
            self._connection().execute(sql, params)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Write failed: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list:
        try:
            return self._connection().execute(sql, params).fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Query failed: {e}") from e

    def _query_dicts(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        try:
            cursor = self._connection().execute(sql, params)
            columns = [description[0] for description in cursor.description]
            return [row_to_dict(columns, row) for row in cursor.fetchall()]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Query failed: {e}") from e

    async def _run(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()

        def locked():
            with self._lock:
                return func()

        return await loop.run_in_executor(None, locked)

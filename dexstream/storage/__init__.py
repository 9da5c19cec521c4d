"""
Storage gateway contract and the DuckDB implementation.
"""

from .duckdb_store import DuckDBEventStore
from .gateway import StorageGateway

__all__ = ["DuckDBEventStore", "StorageGateway"]

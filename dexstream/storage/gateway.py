"""
Storage Gateway contract.

The ingestion pipeline only needs three operations from the analytical
store: accept a standardized event, accept a factory event, and report the
stored count. Failures are signalled by raising StorageError.
"""

from abc import ABC, abstractmethod

from ..models import FactoryEvent, StandardizedEvent


class StorageGateway(ABC):
    """Abstract async storage backend."""

    async def connect(self) -> None:
        """Open the backend connection."""

    async def initialize_schema(self) -> None:
        """Create tables if they do not exist."""

    async def close(self) -> None:
        """Release the backend connection."""

    @abstractmethod
    async def insert_event(self, event: StandardizedEvent) -> None:
        """
        Persist one standardized event.

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def insert_factory_event(self, event: FactoryEvent) -> None:
        """
        Persist one factory event.

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def get_event_count(self) -> int:
        """Total number of stored events."""

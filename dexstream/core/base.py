"""
Base class for long-running dexstream components.

Provides the shared lifecycle: started/stopped state, start-twice misuse
detection and a health check. The listener and the ingestion service both
inherit from Component.
"""

import logging
from abc import ABC
from datetime import datetime
from typing import Optional

from .errors import AlreadyRunningError

logger = logging.getLogger(__name__)


class Component(ABC):
    """
    Base class for dexstream components.

    Subclasses call ``self._mark_started()`` at the end of a successful
    start() and ``self._mark_stopped()`` at the end of stop().
    """

    def __init__(self, name: str):
        """
        Initialize the component.

        Args:
            name: Component name for logging and identification
        """
        self.name = name
        self._started = False
        self._started_at: Optional[datetime] = None
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{name}")

    def _ensure_not_running(self) -> None:
        """Raise AlreadyRunningError if the component is already started."""
        if self._started:
            raise AlreadyRunningError(f"{self.name} is already running")

    def _mark_started(self) -> None:
        self._started = True
        self._started_at = datetime.utcnow()

    def _mark_stopped(self) -> None:
        self._started = False
        self._started_at = None

    async def health_check(self) -> dict:
        """
        Return component status.

        Returns:
            Dictionary with health status:
            {
                "component": str,
                "status": "healthy" | "stopped",
                "uptime_seconds": float,
                "details": {...}
            }
        """
        uptime = (
            (datetime.utcnow() - self._started_at).total_seconds()
            if self._started_at
            else 0
        )

        return {
            "component": self.name,
            "status": "healthy" if self._started else "stopped",
            "uptime_seconds": uptime,
            "details": {},
        }

    @property
    def is_running(self) -> bool:
        """Check if component is started."""
        return self._started

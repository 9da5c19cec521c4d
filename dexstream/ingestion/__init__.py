"""
Buffered ingestion: event buffers, the flush pipeline and the service that runs it all.
"""

from .buffer import EventBuffer
from .pipeline import IngestionPipeline
from .service import IngestionService

__all__ = ["EventBuffer", "IngestionPipeline", "IngestionService"]

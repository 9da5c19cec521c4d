"""
Shared utilities.
"""

from .logger import JSONFormatter, PerformanceLogger, get_performance_logger, setup_logging

__all__ = ["JSONFormatter", "PerformanceLogger", "get_performance_logger", "setup_logging"]

"""
Configuration management module.

Loads config/dexstream.yaml and validates it into an AppConfig.
"""

from .loader import ConfigLoader, get_app_config, get_config_loader, reload_config
from .settings import AppConfig, IngestionConfig, ListenerConfig, StorageConfig, SystemConfig

__all__ = [
    "ConfigLoader",
    "get_app_config",
    "get_config_loader",
    "reload_config",
    "AppConfig",
    "IngestionConfig",
    "ListenerConfig",
    "StorageConfig",
    "SystemConfig",
]

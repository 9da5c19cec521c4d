"""
Configuration loader with YAML + environment variable support.

Loads and validates config/dexstream.yaml. Supports:
- ${ENV_VAR} and ${ENV_VAR:default} placeholders
- Environment variable overrides
- Pydantic validation
- Hot reload and caching
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..core.errors import ConfigurationError
from ..protocols.known_addresses import BSC_CHAIN_ID, ETHEREUM_CHAIN_ID
from .settings import AppConfig

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_NAME = "dexstream"

# Endpoint overrides per chain: (rpc variable, ws variable)
ENDPOINT_ENV_VARS = {
    ETHEREUM_CHAIN_ID: ("ETHEREUM_RPC_URL", "ETHEREUM_WS_URL"),
    BSC_CHAIN_ID: ("BSC_RPC_URL", "BSC_WS_URL"),
}

# Load environment variables from .env file
load_dotenv(PROJECT_ROOT / ".env")


# ============================================================================
# ConfigLoader - Main Configuration Loader
# ============================================================================

class ConfigLoader:
    """
    Configuration loader with YAML + environment variable support.

    Usage:
        loader = ConfigLoader()
        config = loader.load_app_config()
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration loader.

        Args:
            config_dir: Configuration directory (defaults to PROJECT_ROOT/config)
        """
        self.config_dir = Path(config_dir) if config_dir else (PROJECT_ROOT / "config")
        self._cache: Dict[str, Any] = {}
        logger.debug(f"ConfigLoader initialized with config_dir: {self.config_dir}")

    def load_yaml(self, config_name: str) -> Dict[str, Any]:
        """
        Load a YAML configuration file.

        Args:
            config_name: Name of the config file (without .yaml extension)

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        config_path = self.config_dir / f"{config_name}.yaml"

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.debug(f"Loading YAML config from: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        return self._replace_env_vars(config)

    def _replace_env_vars(self, config: Any) -> Any:
        """
        Recursively replace environment variable placeholders in config.

        Placeholders format: ${ENV_VAR_NAME} or ${ENV_VAR_NAME:default_value}
        """
        if isinstance(config, dict):
            return {k: self._replace_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._replace_env_vars(item) for item in config]
        elif isinstance(config, str):
            if config.startswith("${") and config.endswith("}"):
                env_expr = config[2:-1]

                if ":" in env_expr:
                    var_name, default_value = env_expr.split(":", 1)
                    return os.getenv(var_name.strip(), default_value.strip())

                var_name = env_expr.strip()
                value = os.getenv(var_name)
                if value is None:
                    logger.warning(f"Environment variable {var_name} not set, using empty string")
                    return ""
                return value

        return config

    def load_app_config(self, use_cache: bool = True) -> AppConfig:
        """
        Load complete application configuration.

        Raises:
            ConfigurationError: If validation fails
        """
        cache_key = "app_config"

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        config_data: Dict[str, Any] = {}
        try:
            config_data.update(self.load_yaml(CONFIG_NAME))
        except FileNotFoundError:
            logger.warning(f"{CONFIG_NAME}.yaml not found, using defaults")

        config_data = self._apply_env_overrides(config_data)

        try:
            app_config = AppConfig(**config_data)
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        logger.info(
            f"Configuration loaded: {len(app_config.listeners)} listeners, "
            f"database {app_config.storage.database_path}"
        )

        if use_cache:
            self._cache[cache_key] = app_config

        return app_config

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        system = config.setdefault("system", {}) or {}
        config["system"] = system
        if env_val := os.getenv("ENVIRONMENT"):
            system["environment"] = env_val
        if env_val := os.getenv("LOG_LEVEL"):
            system["log_level"] = env_val

        storage = config.setdefault("storage", {}) or {}
        config["storage"] = storage
        if env_val := os.getenv("DEXSTREAM_DB_PATH"):
            storage["database_path"] = env_val

        ingestion = config.setdefault("ingestion", {}) or {}
        config["ingestion"] = ingestion
        if env_val := os.getenv("INGESTION_BATCH_SIZE"):
            ingestion["batch_size"] = int(env_val)
        if env_val := os.getenv("INGESTION_FLUSH_INTERVAL"):
            ingestion["flush_interval_seconds"] = float(env_val)

        # Endpoint overrides only touch listeners declared in YAML
        for listener in config.get("listeners") or []:
            rpc_var, ws_var = ENDPOINT_ENV_VARS.get(listener.get("chain_id"), (None, None))
            if rpc_var and (env_val := os.getenv(rpc_var)):
                listener["rpc_endpoint"] = env_val
            if ws_var and (env_val := os.getenv(ws_var)):
                listener["ws_endpoint"] = env_val

        return config

    def reload(self) -> AppConfig:
        """Reload configuration from disk (hot reload)."""
        logger.info("Reloading configuration from disk")
        self._cache.clear()
        return self.load_app_config(use_cache=False)

    def clear_cache(self):
        """Clear the configuration cache."""
        self._cache.clear()


# ============================================================================
# Global ConfigLoader Instance
# ============================================================================

_global_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get or create global ConfigLoader instance."""
    global _global_loader
    if _global_loader is None:
        _global_loader = ConfigLoader()
    return _global_loader


def get_app_config(use_cache: bool = True) -> AppConfig:
    """Get complete application configuration."""
    return get_config_loader().load_app_config(use_cache=use_cache)


def reload_config() -> AppConfig:
    """Reload configuration from disk (hot reload)."""
    return get_config_loader().reload()

"""
Configuration models using Pydantic for type-safe validation.

This module defines all configuration models for dexstream:
- SystemConfig: Environment, log level, log output
- StorageConfig: DuckDB database location
- IngestionConfig: Batch size and flush interval
- ListenerConfig: One chain: endpoints and protocols
- AppConfig: Complete application configuration
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import ProtocolType
from ..protocols.known_addresses import BSC_CHAIN_ID, CHAIN_NAMES, ETHEREUM_CHAIN_ID


# ============================================================================
# Enums for Configuration
# ============================================================================

class Environment(str, Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ============================================================================
# System Configuration
# ============================================================================

class SystemConfig(BaseModel):
    """System-wide settings."""

    model_config = ConfigDict(use_enum_values=True)

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment"
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level"
    )

    json_logs: bool = Field(
        default=False,
        description="Emit structured JSON log lines"
    )

    log_file: Optional[Path] = Field(
        default=None,
        description="Optional log file path"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names from the environment."""
        return v.upper() if isinstance(v, str) else v


# ============================================================================
# Storage Configuration
# ============================================================================

class StorageConfig(BaseModel):
    """Analytical store settings."""

    database_path: Path = Field(
        default=Path("data/dexstream.duckdb"),
        description="DuckDB database file"
    )


# ============================================================================
# Ingestion Configuration
# ============================================================================

class IngestionConfig(BaseModel):
    """Buffered ingestion settings."""

    batch_size: int = Field(
        default=100,
        gt=0,
        description="Flush a buffer when it holds this many events"
    )

    flush_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Periodic flush interval"
    )


# ============================================================================
# Listener Configuration
# ============================================================================

class ListenerConfig(BaseModel):
    """One chain to listen on."""

    model_config = ConfigDict(use_enum_values=True)

    name: Optional[str] = Field(
        default=None,
        description="Display name (defaults to the chain name)"
    )

    chain_id: int = Field(
        description="EVM chain id"
    )

    rpc_endpoint: str = Field(
        description="HTTP JSON-RPC endpoint"
    )

    ws_endpoint: Optional[str] = Field(
        default=None,
        description="WebSocket endpoint; eth_getLogs polling is used when absent"
    )

    protocols: List[ProtocolType] = Field(
        default_factory=list,
        description="Protocols to listen to on this chain"
    )

    seed_popular_pools: bool = Field(
        default=True,
        description="Attach the built-in high-volume pools at startup"
    )

    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="eth_getLogs polling interval (HTTP only)"
    )

    @field_validator("ws_endpoint", mode="before")
    @classmethod
    def empty_ws_is_none(cls, v):
        """Unset ${VAR} placeholders resolve to empty strings."""
        return v or None

    @property
    def display_name(self) -> str:
        return self.name or CHAIN_NAMES.get(self.chain_id, f"chain-{self.chain_id}")


def default_listeners() -> List[ListenerConfig]:
    """Ethereum (Uniswap V2/V3) and BSC (PancakeSwap V2) on public endpoints."""
    return [
        ListenerConfig(
            name="ethereum",
            chain_id=ETHEREUM_CHAIN_ID,
            rpc_endpoint="https://eth.llamarpc.com",
            protocols=[ProtocolType.UNISWAP_V2, ProtocolType.UNISWAP_V3],
        ),
        ListenerConfig(
            name="bsc",
            chain_id=BSC_CHAIN_ID,
            rpc_endpoint="https://bsc-dataseed.binance.org",
            protocols=[ProtocolType.PANCAKESWAP_V2],
        ),
    ]


# ============================================================================
# Complete Application Configuration
# ============================================================================

class AppConfig(BaseModel):
    """Complete application configuration."""

    model_config = ConfigDict(use_enum_values=True)

    system: SystemConfig = Field(
        default_factory=SystemConfig,
        description="System configuration"
    )

    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage configuration"
    )

    ingestion: IngestionConfig = Field(
        default_factory=IngestionConfig,
        description="Ingestion configuration"
    )

    listeners: List[ListenerConfig] = Field(
        default_factory=default_listeners,
        description="Chains to listen on"
    )

    def listener(self, name: str) -> Optional[ListenerConfig]:
        """Find a listener by display name."""
        for listener in self.listeners:
            if listener.display_name == name:
                return listener
        return None

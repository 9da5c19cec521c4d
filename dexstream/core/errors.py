"""
Exception classes for dexstream.

Only structural misuse (bad protocol configuration, lifecycle misuse) is
raised to callers. Chain read failures and storage write failures are
absorbed by the components that own them.
"""


class DexStreamError(Exception):
    """Base exception for all dexstream errors."""
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(DexStreamError):
    """Exception raised for invalid or inconsistent configuration."""
    pass


class UnsupportedProtocolError(ConfigurationError):
    """Exception raised when a protocol is unknown or not deployed on a chain."""

    def __init__(self, protocol: str, chain_id: int = None):
        self.protocol = protocol
        self.chain_id = chain_id
        if chain_id is None:
            message = f"Unsupported protocol: {protocol}"
        else:
            message = f"Protocol {protocol} not supported on chain {chain_id}"
        super().__init__(message)


# ============================================================================
# Lifecycle Errors
# ============================================================================

class LifecycleError(DexStreamError):
    """Exception raised when a component is used out of lifecycle order."""
    pass


class AlreadyRunningError(LifecycleError):
    """Exception raised when start() is called on a running component."""
    pass


# ============================================================================
# Runtime Errors
# ============================================================================

class StorageError(DexStreamError):
    """Exception raised when the storage backend rejects a write or query."""
    pass


class ChainClientError(DexStreamError):
    """Exception raised for blockchain client connectivity or read errors."""
    pass


class UnsupportedEventError(DexStreamError):
    """Exception raised when a pool delivers an event the protocol has no rule for."""
    pass

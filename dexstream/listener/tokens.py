"""
Token Metadata Resolver.

Resolves ERC-20 symbol/decimals/name for a token address with a single
best-effort on-chain read, falling back to the well-known token table and
finally to a sentinel. Every outcome is cached for the process lifetime.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

from ..chain.client import ChainClient
from ..models import TokenInfo
from ..protocols.abis import ERC20_DECIMALS_FUNCTION, ERC20_NAME_FUNCTION, ERC20_SYMBOL_FUNCTION
from ..protocols.known_addresses import KNOWN_TOKENS

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"
UNKNOWN_DECIMALS = 18
UNKNOWN_TOKEN_NAME = "Unknown Token"
UNKNOWN_NAME = "Unknown"


def unknown_token(address: str) -> TokenInfo:
    """Sentinel metadata for a token nothing is known about."""
    return TokenInfo(
        address=address,
        symbol=UNKNOWN_SYMBOL,
        decimals=UNKNOWN_DECIMALS,
        name=UNKNOWN_TOKEN_NAME,
    )


class TokenMetadataResolver:
    """
    Cached token metadata lookups for one chain.

    resolve() never raises. No retries and no timeout: an unresponsive node
    stalls the resolution of that address.
    """

    def __init__(
        self,
        client: ChainClient,
        chain_id: int,
        known_tokens: Optional[Dict[int, Dict[str, Tuple[str, int, str]]]] = None,
    ):
        self.client = client
        self.chain_id = chain_id
        table = known_tokens if known_tokens is not None else KNOWN_TOKENS
        self._known = {addr.lower(): meta for addr, meta in table.get(chain_id, {}).items()}
        self._cache: Dict[str, TokenInfo] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    async def resolve(self, address: str) -> TokenInfo:
        key = address.lower()

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        # Share one in-flight read between concurrent callers
        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            info = await self._read(address)
        except asyncio.CancelledError:
            # Waiters get the fallback; nothing is cached so a later call retries
            future.set_result(self._fallback(address))
            raise
        except Exception as e:
            logger.error(f"Token metadata resolution failed for {address}: {e}")
            info = self._fallback(address)
        finally:
            self._pending.pop(key, None)

        self._cache[key] = info
        future.set_result(info)
        return info

    async def _read(self, address: str) -> TokenInfo:
        try:
            symbol = await self.client.call(address, ERC20_SYMBOL_FUNCTION)
            decimals = await self.client.call(address, ERC20_DECIMALS_FUNCTION)
        except Exception as e:
            logger.debug(f"Token metadata read failed for {address}: {e}")
            return self._fallback(address)

        try:
            name = await self.client.call(address, ERC20_NAME_FUNCTION)
        except Exception:
            name = UNKNOWN_NAME

        try:
            return TokenInfo(
                address=address,
                symbol=_text(symbol),
                decimals=int(decimals),
                name=_text(name),
            )
        except (TypeError, ValueError) as e:
            logger.debug(f"Malformed token metadata for {address}: {e}")
            return self._fallback(address)

    def _fallback(self, address: str) -> TokenInfo:
        known = self._known.get(address.lower())
        if known is None:
            logger.warning(f"Unknown token {address} on chain {self.chain_id}, using sentinel metadata")
            return unknown_token(address)
        symbol, decimals, name = known
        return TokenInfo(address=address, symbol=symbol, decimals=decimals, name=name)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()


def _text(value) -> str:
    # Some legacy tokens return bytes32 instead of string
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).rstrip(b"\x00").decode("utf-8", errors="replace")
    return str(value)

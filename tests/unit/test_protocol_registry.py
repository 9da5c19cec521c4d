"""
Unit tests for the protocol adapter registry.
"""

import pytest

from dexstream.core.errors import ConfigurationError, UnsupportedProtocolError
from dexstream.models import ProtocolType
from dexstream.protocols.registry import ProtocolFamily, ProtocolRegistry


@pytest.fixture
def registry():
    return ProtocolRegistry()


def test_v2_shapes(registry):
    assert registry.factory_event_shape("uniswap-v2").names == ["PairCreated"]
    assert registry.pool_event_shape("uniswap-v2").names == ["Swap", "Mint", "Burn", "Sync"]
    assert registry.family("pancakeswap-v2") is ProtocolFamily.V2
    assert registry.version("pancakeswap-v2") == "v2"


def test_v3_shapes(registry):
    assert registry.factory_event_shape(ProtocolType.UNISWAP_V3).names == ["PoolCreated"]
    assert registry.pool_event_shape("uniswap-v3").names == ["Initialize", "Swap", "Mint", "Burn"]
    assert registry.version("uniswap-v3") == "v3"


def test_canonical_signatures(registry):
    """Test signatures used for topic0."""
    v2 = registry.pool_event_shape("uniswap-v2")
    v3 = registry.pool_event_shape("uniswap-v3")

    assert v2.get("Swap").signature == "Swap(address,uint256,uint256,uint256,uint256,address)"
    assert v2.get("Sync").signature == "Sync(uint112,uint112)"
    assert v3.get("Swap").signature == "Swap(address,address,int256,int256,uint160,uint128,int24)"
    assert registry.factory_event_shape("uniswap-v3").events[0].signature == (
        "PoolCreated(address,address,uint24,int24,address)"
    )


def test_factory_addresses(registry):
    assert registry.factory_address(1, "uniswap-v2") == "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
    assert registry.factory_address(1, "uniswap-v3") == "0x1F98431c8aD98523631AE4a59f267346ea31F984"
    assert registry.factory_address(56, "pancakeswap-v2") == "0xcA143Ce0Fe65960e6Aa4D42C8d3cE161c2B6604f"


def test_supported_protocols(registry):
    assert registry.supported_protocols(1) == [ProtocolType.UNISWAP_V2, ProtocolType.UNISWAP_V3]
    assert registry.supported_protocols(56) == [ProtocolType.PANCAKESWAP_V2]
    assert registry.supported_protocols(137) == []


def test_unknown_protocol_raises(registry):
    with pytest.raises(UnsupportedProtocolError) as exc_info:
        registry.pool_event_shape("sushiswap")

    assert exc_info.value.protocol == "sushiswap"
    assert isinstance(exc_info.value, ConfigurationError)


def test_protocol_not_deployed_on_chain_raises(registry):
    with pytest.raises(UnsupportedProtocolError) as exc_info:
        registry.factory_address(56, "uniswap-v3")

    assert exc_info.value.chain_id == 56

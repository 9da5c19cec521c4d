"""
Contract ABI fragments for the supported protocol families.

Only the events and view functions the listener uses are included.
"""

# ============================================================================
# Factory Events
# ============================================================================

PAIR_CREATED_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "token0", "type": "address"},
        {"indexed": True, "name": "token1", "type": "address"},
        {"indexed": False, "name": "pair", "type": "address"},
        {"indexed": False, "name": "", "type": "uint256"},
    ],
    "name": "PairCreated",
    "type": "event",
}

POOL_CREATED_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "token0", "type": "address"},
        {"indexed": True, "name": "token1", "type": "address"},
        {"indexed": True, "name": "fee", "type": "uint24"},
        {"indexed": False, "name": "tickSpacing", "type": "int24"},
        {"indexed": False, "name": "pool", "type": "address"},
    ],
    "name": "PoolCreated",
    "type": "event",
}

# ============================================================================
# V2 Pair Events (Uniswap V2, PancakeSwap V2)
# ============================================================================

V2_SWAP_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "sender", "type": "address"},
        {"indexed": False, "name": "amount0In", "type": "uint256"},
        {"indexed": False, "name": "amount1In", "type": "uint256"},
        {"indexed": False, "name": "amount0Out", "type": "uint256"},
        {"indexed": False, "name": "amount1Out", "type": "uint256"},
        {"indexed": True, "name": "to", "type": "address"},
    ],
    "name": "Swap",
    "type": "event",
}

V2_MINT_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "sender", "type": "address"},
        {"indexed": False, "name": "amount0", "type": "uint256"},
        {"indexed": False, "name": "amount1", "type": "uint256"},
    ],
    "name": "Mint",
    "type": "event",
}

V2_BURN_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "sender", "type": "address"},
        {"indexed": False, "name": "amount0", "type": "uint256"},
        {"indexed": False, "name": "amount1", "type": "uint256"},
        {"indexed": True, "name": "to", "type": "address"},
    ],
    "name": "Burn",
    "type": "event",
}

V2_SYNC_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "reserve0", "type": "uint112"},
        {"indexed": False, "name": "reserve1", "type": "uint112"},
    ],
    "name": "Sync",
    "type": "event",
}

# ============================================================================
# V3 Pool Events (Uniswap V3)
# ============================================================================

V3_INITIALIZE_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "sqrtPriceX96", "type": "uint160"},
        {"indexed": False, "name": "tick", "type": "int24"},
    ],
    "name": "Initialize",
    "type": "event",
}

V3_SWAP_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "sender", "type": "address"},
        {"indexed": True, "name": "recipient", "type": "address"},
        {"indexed": False, "name": "amount0", "type": "int256"},
        {"indexed": False, "name": "amount1", "type": "int256"},
        {"indexed": False, "name": "sqrtPriceX96", "type": "uint160"},
        {"indexed": False, "name": "liquidity", "type": "uint128"},
        {"indexed": False, "name": "tick", "type": "int24"},
    ],
    "name": "Swap",
    "type": "event",
}

V3_MINT_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "sender", "type": "address"},
        {"indexed": True, "name": "owner", "type": "address"},
        {"indexed": True, "name": "tickLower", "type": "int24"},
        {"indexed": True, "name": "tickUpper", "type": "int24"},
        {"indexed": False, "name": "amount", "type": "uint128"},
        {"indexed": False, "name": "amount0", "type": "uint256"},
        {"indexed": False, "name": "amount1", "type": "uint256"},
    ],
    "name": "Mint",
    "type": "event",
}

V3_BURN_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "owner", "type": "address"},
        {"indexed": True, "name": "tickLower", "type": "int24"},
        {"indexed": True, "name": "tickUpper", "type": "int24"},
        {"indexed": False, "name": "amount", "type": "uint128"},
        {"indexed": False, "name": "amount0", "type": "uint256"},
        {"indexed": False, "name": "amount1", "type": "uint256"},
    ],
    "name": "Burn",
    "type": "event",
}

# ============================================================================
# View Functions
# ============================================================================

def _view(name: str, output_type: str) -> dict:
    return {
        "constant": True,
        "inputs": [],
        "name": name,
        "outputs": [{"name": "", "type": output_type}],
        "stateMutability": "view",
        "type": "function",
    }


TOKEN0_FUNCTION = _view("token0", "address")
TOKEN1_FUNCTION = _view("token1", "address")

ERC20_SYMBOL_FUNCTION = _view("symbol", "string")
ERC20_DECIMALS_FUNCTION = _view("decimals", "uint8")
ERC20_NAME_FUNCTION = _view("name", "string")

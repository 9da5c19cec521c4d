"""
Static address tables.

Factory deployments, well-known token metadata used when on-chain reads fail,
and the high-volume pools seeded at startup. These are data only; the
resolution logic lives in the listener package.
"""

ETHEREUM_CHAIN_ID = 1
BSC_CHAIN_ID = 56

CHAIN_NAMES = {
    ETHEREUM_CHAIN_ID: "ethereum",
    BSC_CHAIN_ID: "bsc",
}

# ============================================================================
# Factory & Router Deployments
# ============================================================================

FACTORY_ADDRESSES = {
    ETHEREUM_CHAIN_ID: {
        "uniswap-v2": {
            "factory": "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
            "router": "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
        },
        "uniswap-v3": {
            "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
            "router": "0xE592427A0AEce92De3Edee1F18E0157C05861564",
        },
    },
    BSC_CHAIN_ID: {
        "pancakeswap-v2": {
            "factory": "0xcA143Ce0Fe65960e6Aa4D42C8d3cE161c2B6604f",
            "router": "0x10ED43C718714eb63d5aA57B78B54704E256024E",
        },
    },
}

# ============================================================================
# Well-known Tokens (keyed by chain id, then lower-cased address)
# ============================================================================

KNOWN_TOKENS = {
    ETHEREUM_CHAIN_ID: {
        "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": ("WETH", 18, "Wrapped Ether"),
        "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": ("USDC", 6, "USD Coin"),
        "0xdac17f958d2ee523a2206206994597c13d831ec7": ("USDT", 6, "Tether USD"),
        "0x6b175474e89094c44da98b954eedeac495271d0f": ("DAI", 18, "Dai Stablecoin"),
        "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599": ("WBTC", 8, "Wrapped BTC"),
        "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984": ("UNI", 18, "Uniswap"),
    },
    BSC_CHAIN_ID: {
        "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c": ("WBNB", 18, "Wrapped BNB"),
        "0xe9e7cea3dedca5984780bafc599bd69add087d56": ("BUSD", 18, "BUSD Token"),
        "0x55d398326f99059ff775485246999027b3197955": ("USDT", 18, "Tether USD"),
        "0x0e09fabb73bd3ade0a17ecc321fd13a19e81ce82": ("CAKE", 18, "PancakeSwap Token"),
    },
}

# ============================================================================
# Popular Pools (seeded at startup)
# ============================================================================

POPULAR_POOLS = {
    ETHEREUM_CHAIN_ID: [
        {"address": "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc", "protocol": "uniswap-v2"},  # USDC/WETH
        {"address": "0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852", "protocol": "uniswap-v2"},  # WETH/USDT
        {"address": "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11", "protocol": "uniswap-v2"},  # DAI/WETH
        {"address": "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640", "protocol": "uniswap-v3", "fee": 500, "tick_spacing": 10},
        {"address": "0x8ad599c3A0ff1De082011EFDDc58f1908eb6e6D8", "protocol": "uniswap-v3", "fee": 3000, "tick_spacing": 60},
        {"address": "0x4e68Ccd3E89f51C3074ca5072bbAC773960dFa36", "protocol": "uniswap-v3", "fee": 3000, "tick_spacing": 60},
    ],
    BSC_CHAIN_ID: [
        {"address": "0x58F876857a02D6762E0101bb5C46A8c1ED44Dc16", "protocol": "pancakeswap-v2"},  # WBNB/BUSD
        {"address": "0x16b9a82891338f9bA80E2D6970FddA79D1eb0daE", "protocol": "pancakeswap-v2"},  # USDT/WBNB
    ],
}

# token0/token1 of the popular pools, used when the pool's own view calls fail
POOL_TOKEN_FALLBACK = {
    "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc": (
        "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    ),
    "0x0d4a11d5eeaac28ec3f61d100daf4d40471f1852": (
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    ),
    "0xa478c2975ab1ea89e8196811f51a7b7ade33eb11": (
        "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    ),
    "0x88e6a0c2ddd26feeb64f039a2c41296fcb3f5640": (
        "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    ),
    "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8": (
        "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    ),
    "0x4e68ccd3e89f51c3074ca5072bbac773960dfa36": (
        "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    ),
    "0x58f876857a02d6762e0101bb5c46a8c1ed44dc16": (
        "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
        "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56",
    ),
    "0x16b9a82891338f9ba80e2d6970fdda79d1eb0dae": (
        "0x55d398326f99059fF775485246999027B3197955",
        "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
    ),
}

"""Static registry of supported EVM networks and their common tokens."""
from __future__ import annotations

from ..errors import UnsupportedNetworkError
from ..models import ChainInfo, TokenInfo

NETWORKS: dict[int, ChainInfo] = {
    1: ChainInfo(
        chain_id=1,
        name="Ethereum",
        symbol="ETH",
        color="#627EEA",
        rpc_urls=(
            "https://ethereum.publicnode.com",
            "https://rpc.ankr.com/eth",
            "https://1rpc.io/eth",
            "https://cloudflare-eth.com",
        ),
    ),
    137: ChainInfo(
        chain_id=137,
        name="Polygon",
        symbol="MATIC",
        color="#8247E5",
        rpc_urls=(
            "https://polygon-rpc.com",
            "https://rpc.ankr.com/polygon",
            "https://1rpc.io/matic",
            "https://polygon.publicnode.com",
        ),
    ),
    56: ChainInfo(
        chain_id=56,
        name="BSC",
        symbol="BNB",
        color="#F3BA2F",
        rpc_urls=(
            "https://bsc-dataseed.binance.org",
            "https://rpc.ankr.com/bsc",
            "https://1rpc.io/bnb",
            "https://bsc.publicnode.com",
        ),
    ),
    43114: ChainInfo(
        chain_id=43114,
        name="Avalanche",
        symbol="AVAX",
        color="#E84142",
        rpc_urls=(
            "https://api.avax.network/ext/bc/C/rpc",
            "https://rpc.ankr.com/avalanche",
            "https://1rpc.io/avax/c",
            "https://avalanche.publicnode.com",
        ),
    ),
    42161: ChainInfo(
        chain_id=42161,
        name="Arbitrum",
        symbol="ETH",
        color="#28A0F0",
        rpc_urls=(
            "https://arb1.arbitrum.io/rpc",
            "https://rpc.ankr.com/arbitrum",
            "https://1rpc.io/arb",
            "https://arbitrum.publicnode.com",
        ),
    ),
    10: ChainInfo(
        chain_id=10,
        name="Optimism",
        symbol="ETH",
        color="#FF0420",
        rpc_urls=(
            "https://mainnet.optimism.io",
            "https://rpc.ankr.com/optimism",
            "https://1rpc.io/op",
            "https://optimism.publicnode.com",
        ),
    ),
    8453: ChainInfo(
        chain_id=8453,
        name="Base",
        symbol="ETH",
        color="#0052FF",
        rpc_urls=(
            "https://mainnet.base.org",
            "https://rpc.ankr.com/base",
            "https://1rpc.io/base",
            "https://base.publicnode.com",
        ),
    ),
    # Testnets
    11155111: ChainInfo(
        chain_id=11155111,
        name="Sepolia",
        symbol="ETH",
        color="#627EEA",
        rpc_urls=(
            "https://rpc.sepolia.org",
            "https://rpc.ankr.com/eth_sepolia",
        ),
        is_testnet=True,
    ),
    80001: ChainInfo(
        chain_id=80001,
        name="Mumbai",
        symbol="MATIC",
        color="#8247E5",
        rpc_urls=(
            "https://rpc-mumbai.maticvigil.com",
            "https://matic-mumbai.chainstacklabs.com",
            "https://rpc.ankr.com/polygon_mumbai",
        ),
        is_testnet=True,
    ),
    97: ChainInfo(
        chain_id=97,
        name="BSC Testnet",
        symbol="BNB",
        color="#F3BA2F",
        rpc_urls=(
            "https://data-seed-prebsc-1-s1.binance.org:8545",
            "https://data-seed-prebsc-2-s1.binance.org:8545",
        ),
        is_testnet=True,
    ),
}


def _token(address: str, symbol: str, name: str, decimals: int, chain_id: int) -> TokenInfo:
    return TokenInfo(
        address=address, symbol=symbol, name=name, decimals=decimals, chain_id=chain_id
    )


COMMON_TOKENS: dict[int, tuple[TokenInfo, ...]] = {
    1: (
        _token("0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", "Tether USD", 6, 1),
        _token("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", "UNI", "Uniswap", 18, 1),
    ),
    137: (
        _token("0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", "USDC", "USD Coin", 6, 137),
        _token("0xc2132D05D31c914a87C6611C10748AEb04B58e8F", "USDT", "Tether USD", 6, 137),
    ),
    56: (
        _token("0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", "USD Coin", 18, 56),
        _token("0x55d398326f99059fF775485246999027B3197955", "USDT", "Tether USD", 18, 56),
    ),
}

DEFAULT_NATIVE_SYMBOL = "ETH"


def get_chain(chain_id: int) -> ChainInfo:
    """Return registry metadata for ``chain_id``."""
    try:
        return NETWORKS[chain_id]
    except KeyError:
        raise UnsupportedNetworkError(chain_id) from None


def is_supported(chain_id: int) -> bool:
    return chain_id in NETWORKS


def get_common_tokens_for_network(chain_id: int) -> list[TokenInfo]:
    return list(COMMON_TOKENS.get(chain_id, ()))


def find_token(chain_id: int, address: str) -> TokenInfo | None:
    """Look up a registered token by address (case-insensitive)."""
    wanted = address.lower()
    for token in COMMON_TOKENS.get(chain_id, ()):
        if token.address.lower() == wanted:
            return token
    return None


def native_symbol(chain_id: int) -> str:
    chain = NETWORKS.get(chain_id)
    return chain.symbol if chain else DEFAULT_NATIVE_SYMBOL


def default_allowed_rpc_urls() -> tuple[str, ...]:
    """Every mainnet RPC endpoint in the registry, in registry order."""
    return tuple(
        url
        for chain in NETWORKS.values()
        if not chain.is_testnet
        for url in chain.rpc_urls
    )

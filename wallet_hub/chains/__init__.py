"""Network registry and chain clients."""
from .registry import (
    COMMON_TOKENS,
    NETWORKS,
    default_allowed_rpc_urls,
    find_token,
    get_chain,
    get_common_tokens_for_network,
    is_supported,
    native_symbol,
)

__all__ = [
    "COMMON_TOKENS",
    "NETWORKS",
    "default_allowed_rpc_urls",
    "find_token",
    "get_chain",
    "get_common_tokens_for_network",
    "is_supported",
    "native_symbol",
]

"""EVM JSON-RPC client and unit helpers."""
from .client import EvmClient

__all__ = ["EvmClient"]

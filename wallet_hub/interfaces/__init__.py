"""Collaborator interfaces consumed by the wallet session."""
from .chain import ChainClient
from .price_oracle import PriceOracle

__all__ = ["ChainClient", "PriceOracle"]

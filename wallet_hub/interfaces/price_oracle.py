"""Price oracle protocol: price feed abstraction."""
from typing import Protocol

from ..models import TokenPrice


class PriceOracle(Protocol):
    """Abstract interface for fetching token prices keyed by symbol."""

    async def get_token_prices_with_fallback(
        self, symbols: list[str], chain_id: int
    ) -> dict[str, TokenPrice]: ...

"""Chain client protocol: wallet/RPC collaborator abstraction."""
from typing import Protocol

from ..models import BalanceResult, ChainInfo, NetworkHealth, TokenBalance


class ChainClient(Protocol):
    """Abstract interface for the wallet's chain-facing operations."""

    async def get_balance_with_retry(self, address: str) -> BalanceResult: ...

    async def get_multiple_token_balances(
        self, token_addresses: list[str], wallet_address: str
    ) -> list[TokenBalance]: ...

    async def check_network_health(self) -> NetworkHealth: ...

    async def switch_network(self, chain_id: int) -> bool: ...

    def get_current_chain(self) -> ChainInfo: ...

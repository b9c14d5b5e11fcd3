"""Exception hierarchy for wallet-hub."""


class WalletHubError(Exception):
    """Base class for all wallet-hub errors."""


class RpcError(WalletHubError):
    """JSON-RPC transport or node error."""


class UnsupportedNetworkError(WalletHubError):
    """Chain id is not present in the network registry."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Unsupported network: {chain_id}")
        self.chain_id = chain_id


class NetworkSwitchError(WalletHubError):
    """Network switch reported success but the new chain could not be resolved."""


class ValidationError(WalletHubError):
    """User input rejected before any network call."""


class CredentialError(WalletHubError):
    """Unknown account, wrong password or mismatched key."""

"""Data models: all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainInfo:
    """Static metadata for one EVM network."""

    chain_id: int
    name: str
    symbol: str
    rpc_urls: tuple[str, ...] = ()
    color: str = ""
    is_testnet: bool = False


@dataclass(frozen=True)
class TokenInfo:
    """ERC-20 token descriptor."""

    address: str
    symbol: str
    name: str
    decimals: int
    chain_id: int


@dataclass(frozen=True)
class TokenBalance:
    """Balance snapshot of one token for one wallet."""

    token: TokenInfo
    balance: str
    formatted_balance: str
    balance_wei: int


@dataclass(frozen=True)
class TokenPrice:
    """USD price snapshot for a symbol."""

    symbol: str
    price_usd: float
    change_24h: float = 0.0
    market_cap: float | None = None
    volume_24h: float | None = None
    last_updated: float = 0.0


# Upper-case symbol -> price snapshot.
PriceData = dict[str, TokenPrice]


@dataclass(frozen=True)
class WalletInfo:
    """The connected account as observed on one chain."""

    address: str
    balance: str
    chain_id: int
    chain: ChainInfo


@dataclass(frozen=True)
class BalanceResult:
    success: bool
    balance: str
    error: str | None = None


@dataclass(frozen=True)
class NetworkHealth:
    chain_id: int
    block_number: int
    healthy: bool


@dataclass(frozen=True)
class AccountRecord:
    """Stored account; ``encrypted`` holds the sealed private key."""

    id: str
    name: str
    address: str
    account_type: str = "imported"
    encrypted: str = ""


@dataclass(frozen=True)
class TransactionResult:
    success: bool
    tx_hash: str = ""
    error: str | None = None

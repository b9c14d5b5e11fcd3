"""Unit tests for data models."""
from __future__ import annotations

from dataclasses import replace

import pytest

from wallet_hub.chains.registry import NETWORKS
from wallet_hub.models import (
    AccountRecord,
    TokenPrice,
    TransactionResult,
    WalletInfo,
)


class TestWalletInfo:
    def test_frozen(self, eth_wallet: WalletInfo) -> None:
        with pytest.raises(AttributeError):
            eth_wallet.balance = "9.0"  # type: ignore[misc]

    def test_replace_keeps_other_fields(self, eth_wallet: WalletInfo) -> None:
        moved = replace(eth_wallet, chain_id=137, chain=NETWORKS[137])
        assert moved.address == eth_wallet.address
        assert moved.balance == eth_wallet.balance
        assert moved.chain.symbol == "MATIC"

    def test_equality(self, eth_wallet: WalletInfo) -> None:
        same = WalletInfo(
            address=eth_wallet.address, balance="1.5", chain_id=1, chain=NETWORKS[1]
        )
        assert same == eth_wallet


class TestTokenPrice:
    def test_defaults(self) -> None:
        p = TokenPrice(symbol="ETH", price_usd=2000.0)
        assert p.change_24h == 0.0
        assert p.market_cap is None
        assert p.volume_24h is None


class TestAccountRecord:
    def test_defaults(self) -> None:
        a = AccountRecord(id="1", name="main", address="0xabc")
        assert a.account_type == "imported"
        assert a.encrypted == ""


class TestTransactionResult:
    def test_failure_has_no_hash(self) -> None:
        r = TransactionResult(success=False, error="nonce too low")
        assert r.tx_hash == ""
        assert r.error == "nonce too low"

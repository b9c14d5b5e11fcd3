"""Unit tests for portfolio valuation."""
from __future__ import annotations

import pytest

from wallet_hub.models import TokenBalance, TokenPrice, WalletInfo
from wallet_hub.portfolio import calculate_portfolio_value


class TestCalculatePortfolioValue:
    def test_native_plus_priced_tokens(
        self,
        eth_wallet: WalletInfo,
        sample_token_balances: list[TokenBalance],
        sample_prices: dict[str, TokenPrice],
    ) -> None:
        # 1.5 ETH @ 2000 + 100 USDT @ 1; UNI has no price and is skipped
        value = calculate_portfolio_value(eth_wallet, sample_token_balances, sample_prices)
        assert value == pytest.approx(3100.0)

    def test_no_wallet_is_zero(
        self,
        sample_token_balances: list[TokenBalance],
        sample_prices: dict[str, TokenPrice],
    ) -> None:
        assert calculate_portfolio_value(None, sample_token_balances, sample_prices) == 0.0

    def test_no_prices_is_zero(
        self, eth_wallet: WalletInfo, sample_token_balances: list[TokenBalance]
    ) -> None:
        assert calculate_portfolio_value(eth_wallet, sample_token_balances, {}) == 0.0

    def test_missing_native_price(
        self,
        eth_wallet: WalletInfo,
        sample_token_balances: list[TokenBalance],
    ) -> None:
        prices = {"USDT": TokenPrice(symbol="USDT", price_usd=1.0)}
        value = calculate_portfolio_value(eth_wallet, sample_token_balances, prices)
        assert value == pytest.approx(100.0)

    def test_order_independent(
        self,
        eth_wallet: WalletInfo,
        sample_token_balances: list[TokenBalance],
    ) -> None:
        prices = {
            "ETH": TokenPrice(symbol="ETH", price_usd=0.1),
            "USDT": TokenPrice(symbol="USDT", price_usd=0.2),
            "UNI": TokenPrice(symbol="UNI", price_usd=0.3),
        }
        forward = calculate_portfolio_value(eth_wallet, sample_token_balances, prices)
        backward = calculate_portfolio_value(
            eth_wallet, list(reversed(sample_token_balances)), prices
        )
        assert forward == backward

    def test_uses_chain_native_symbol(self, polygon_wallet: WalletInfo) -> None:
        prices = {
            "ETH": TokenPrice(symbol="ETH", price_usd=2000.0),
            "MATIC": TokenPrice(symbol="MATIC", price_usd=0.5),
        }
        assert calculate_portfolio_value(polygon_wallet, [], prices) == pytest.approx(10.0)

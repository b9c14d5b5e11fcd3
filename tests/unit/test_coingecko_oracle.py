"""Unit tests for the CoinGecko oracle: parsing, caching and fallbacks."""
from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wallet_hub.config import PriceConfig
from wallet_hub.oracles.coingecko import MOCK_PRICES, CoinGeckoOracle, coin_id_for

SESSION_PATH = "wallet_hub.oracles.coingecko.aiohttp.ClientSession"
CONNECTOR_PATH = "wallet_hub.oracles.coingecko.aiohttp.TCPConnector"


@pytest.fixture()
def oracle(sample_price_config: PriceConfig) -> CoinGeckoOracle:
    return CoinGeckoOracle(sample_price_config)


def _response(payload: dict | None = None, status: int = 200) -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=payload or {})
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def _session(*responses: AsyncMock, error: Exception | None = None) -> AsyncMock:
    session = AsyncMock()
    if error is not None:
        session.get = MagicMock(side_effect=error)
    elif len(responses) == 1:
        session.get = MagicMock(return_value=responses[0])
    else:
        session.get = MagicMock(side_effect=list(responses))
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


COINGECKO_BATCH = {
    "ethereum": {
        "usd": 2000.0,
        "usd_24h_change": 2.5,
        "usd_market_cap": 240_000_000_000,
        "usd_24h_vol": 10_000_000_000,
    },
    "tether": {"usd": 1.0, "usd_24h_change": -0.01},
}


class TestCoinIdMapping:
    def test_known_symbol(self) -> None:
        assert coin_id_for("matic", 137) == "matic-network"

    def test_unknown_symbol_falls_back_to_lowercase(self) -> None:
        assert coin_id_for("FOO", 1) == "foo"


class TestGetTokenPrices:
    @pytest.mark.asyncio
    async def test_parses_batch_response(self, oracle: CoinGeckoOracle) -> None:
        session = _session(_response(COINGECKO_BATCH))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                prices = await oracle.get_token_prices(["ETH", "usdt"], 1)

        assert set(prices) == {"ETH", "USDT"}
        assert prices["ETH"].price_usd == pytest.approx(2000.0)
        assert prices["ETH"].change_24h == pytest.approx(2.5)
        assert prices["ETH"].market_cap == 240_000_000_000
        assert prices["USDT"].symbol == "USDT"
        params = session.get.call_args.kwargs["params"]
        assert params["ids"] == "ethereum,tether"

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, oracle: CoinGeckoOracle) -> None:
        session = _session(_response(COINGECKO_BATCH))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                await oracle.get_token_prices(["ETH", "USDT"], 1)
                prices = await oracle.get_token_prices(["ETH", "USDT"], 1)

        assert session.get.call_count == 1
        assert prices["ETH"].price_usd == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_cache_is_per_chain(self, oracle: CoinGeckoOracle) -> None:
        session = _session(_response(COINGECKO_BATCH))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                await oracle.get_token_prices(["ETH"], 1)
                await oracle.get_token_prices(["ETH"], 42161)

        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, sample_price_config: PriceConfig) -> None:
        oracle = CoinGeckoOracle(replace(sample_price_config, cache_seconds=0))
        session = _session(_response(COINGECKO_BATCH))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                await oracle.get_token_prices(["ETH"], 1)
                await oracle.get_token_prices(["ETH"], 1)

        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_symbols_missing_from_response_are_omitted(
        self, oracle: CoinGeckoOracle
    ) -> None:
        session = _session(_response({"ethereum": {"usd": 2000.0}}))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                prices = await oracle.get_token_prices(["ETH", "FOO"], 1)

        assert list(prices) == ["ETH"]


class TestGetTokenPrice:
    @pytest.mark.asyncio
    async def test_falls_back_to_cryptocompare(self, oracle: CoinGeckoOracle) -> None:
        cryptocompare = {
            "RAW": {"ETH": {"USD": {"PRICE": 1999.5, "CHANGEPCT24HOUR": -1.25}}}
        }
        session = _session(_response(status=500), _response(cryptocompare))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                price = await oracle.get_token_price("ETH", 1)

        assert price is not None
        assert price.price_usd == pytest.approx(1999.5)
        assert price.change_24h == pytest.approx(-1.25)
        second_url = session.get.call_args_list[1].args[0]
        assert second_url.endswith("/pricemultifull")

    @pytest.mark.asyncio
    async def test_none_when_every_source_fails(self, oracle: CoinGeckoOracle) -> None:
        session = _session(error=ConnectionError("offline"))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                price = await oracle.get_token_price("ETH", 1)

        assert price is None


class TestFallbackToMock:
    @pytest.mark.asyncio
    async def test_rate_limited_uses_mock_prices(self, oracle: CoinGeckoOracle) -> None:
        session = _session(_response(status=429))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                prices = await oracle.get_token_prices_with_fallback(["ETH", "USDT"], 1)

        assert prices["ETH"].price_usd == MOCK_PRICES["ETH"]
        assert prices["ETH"].change_24h == 0.0
        assert prices["USDT"].price_usd == 1.0

    @pytest.mark.asyncio
    async def test_network_error_uses_mock_prices(self, oracle: CoinGeckoOracle) -> None:
        session = _session(error=ConnectionError("offline"))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                prices = await oracle.get_token_prices_with_fallback(["MATIC"], 137)

        assert prices["MATIC"].price_usd == MOCK_PRICES["MATIC"]

    @pytest.mark.asyncio
    async def test_live_data_preferred(self, oracle: CoinGeckoOracle) -> None:
        session = _session(_response(COINGECKO_BATCH))

        with patch(SESSION_PATH, return_value=session):
            with patch(CONNECTOR_PATH):
                prices = await oracle.get_token_prices_with_fallback(["ETH"], 1)

        assert prices["ETH"].price_usd == pytest.approx(2000.0)

    def test_mock_data_skips_unknown_symbols(self) -> None:
        prices = CoinGeckoOracle.get_mock_price_data(["ETH", "NOPE"])
        assert list(prices) == ["ETH"]

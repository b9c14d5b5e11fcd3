"""CoinGecko price oracle with CryptoCompare and static fallbacks."""
from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any

import aiohttp
import certifi

from ..config import PriceConfig
from ..models import TokenPrice

logger = logging.getLogger(__name__)

# Per-chain symbol -> CoinGecko coin id.
SYMBOL_MAP: dict[int, dict[str, str]] = {
    1: {
        "ETH": "ethereum",
        "WETH": "weth",
        "USDC": "usd-coin",
        "USDT": "tether",
        "UNI": "uniswap",
        "LINK": "chainlink",
        "MATIC": "matic-network",
        "DAI": "dai",
        "SHIB": "shiba-inu",
    },
    137: {
        "MATIC": "matic-network",
        "WMATIC": "matic-network",
        "USDC": "usd-coin",
        "USDT": "tether",
        "WETH": "weth",
        "UNI": "uniswap",
        "LINK": "chainlink",
        "DAI": "dai",
        "WBTC": "wrapped-bitcoin",
    },
    56: {
        "BNB": "binancecoin",
        "WBNB": "wbnb",
        "USDC": "usd-coin",
        "USDT": "tether",
        "ETH": "ethereum",
        "DOT": "polkadot",
        "LINK": "chainlink",
        "XRP": "ripple",
        "AVAX": "avalanche-2",
    },
    43114: {
        "AVAX": "avalanche-2",
        "WAVAX": "avalanche-2",
        "USDC": "usd-coin",
        "USDT": "tether",
        "WETH": "weth",
        "LINK": "chainlink",
        "DAI": "dai",
    },
    42161: {
        "ETH": "ethereum",
        "WETH": "weth",
        "USDC": "usd-coin",
        "USDT": "tether",
        "UNI": "uniswap",
        "LINK": "chainlink",
        "DAI": "dai",
    },
    10: {
        "ETH": "ethereum",
        "WETH": "weth",
        "USDC": "usd-coin",
        "USDT": "tether",
        "UNI": "uniswap",
        "LINK": "chainlink",
        "DAI": "dai",
    },
    8453: {
        "ETH": "ethereum",
        "WETH": "weth",
        "USDC": "usd-coin",
        "DAI": "dai",
        "AERO": "aerodrome-finance",
    },
}

# Demo prices served when every live source fails.
MOCK_PRICES: dict[str, float] = {
    "ETH": 2234.56,
    "BTC": 43567.89,
    "USDC": 1.0,
    "USDT": 1.0,
    "BNB": 312.45,
    "MATIC": 0.89,
    "AVAX": 36.78,
    "UNI": 8.34,
    "LINK": 14.67,
    "DAI": 1.0,
    "WETH": 2234.56,
    "WBTC": 43567.89,
    "SHIB": 0.000024,
    "DOT": 7.89,
    "XRP": 0.52,
    "AERO": 1.23,
}


class PriceFetchError(Exception):
    """A price API answered with a non-200 status."""


def coin_id_for(symbol: str, chain_id: int) -> str:
    return SYMBOL_MAP.get(chain_id, {}).get(symbol.upper(), symbol.lower())


class CoinGeckoOracle:
    """Fetch USD prices by symbol, cached per chain and rate limited."""

    def __init__(self, config: PriceConfig) -> None:
        self.coingecko_url = config.coingecko_url.rstrip("/")
        self.cryptocompare_url = config.cryptocompare_url.rstrip("/")
        self.cache_seconds = config.cache_seconds
        self.min_request_interval = config.min_request_interval_seconds
        self.timeout = config.timeout

        self._cache: dict[str, tuple[TokenPrice, float]] = {}
        self._last_request_time = 0.0
        self._throttle_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _throttle(self) -> None:
        async with self._throttle_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.min_request_interval:
                await asyncio.sleep(self.min_request_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def _get_json(
        self, url: str, params: dict[str, str], throttled: bool = True
    ) -> dict[str, Any]:
        if throttled:
            await self._throttle()

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status == 429:
                    raise PriceFetchError("Rate limit exceeded")
                if response.status != 200:
                    raise PriceFetchError(f"HTTP {response.status} from {url}")
                return await response.json()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    @staticmethod
    def _cache_key(symbol: str, chain_id: int) -> str:
        return f"{symbol.upper()}-{chain_id}"

    def _cached(self, symbol: str, chain_id: int) -> TokenPrice | None:
        entry = self._cache.get(self._cache_key(symbol, chain_id))
        if entry is None:
            return None
        price, stored_at = entry
        if time.monotonic() - stored_at >= self.cache_seconds:
            return None
        return price

    def _store(self, symbol: str, chain_id: int, price: TokenPrice) -> None:
        self._cache[self._cache_key(symbol, chain_id)] = (price, time.monotonic())

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    @staticmethod
    def _from_coingecko(symbol: str, coin_data: dict[str, Any]) -> TokenPrice:
        return TokenPrice(
            symbol=symbol.upper(),
            price_usd=float(coin_data.get("usd") or 0),
            change_24h=float(coin_data.get("usd_24h_change") or 0),
            market_cap=coin_data.get("usd_market_cap"),
            volume_24h=coin_data.get("usd_24h_vol"),
            last_updated=time.time(),
        )

    async def _fetch_batch(self, symbols: list[str], chain_id: int) -> dict[str, TokenPrice]:
        coin_ids = [coin_id_for(symbol, chain_id) for symbol in symbols]
        if not coin_ids:
            return {}

        data = await self._get_json(
            f"{self.coingecko_url}/simple/price",
            {
                "ids": ",".join(dict.fromkeys(coin_ids)),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_market_cap": "true",
                "include_24hr_vol": "true",
            },
        )

        results: dict[str, TokenPrice] = {}
        for symbol, coin_id in zip(symbols, coin_ids):
            coin_data = data.get(coin_id)
            if coin_data:
                results[symbol.upper()] = self._from_coingecko(symbol, coin_data)
        return results

    async def _fetch_from_coingecko(self, symbol: str, chain_id: int) -> TokenPrice | None:
        coin_id = coin_id_for(symbol, chain_id)
        try:
            data = await self._get_json(
                f"{self.coingecko_url}/simple/price",
                {
                    "ids": coin_id,
                    "vs_currencies": "usd",
                    "include_24hr_change": "true",
                    "include_market_cap": "true",
                    "include_24hr_vol": "true",
                },
            )
        except Exception as e:
            logger.error("CoinGecko API error for %s: %s", coin_id, e)
            return None

        coin_data = data.get(coin_id)
        if not coin_data:
            return None
        return self._from_coingecko(symbol, coin_data)

    async def _fetch_from_cryptocompare(self, symbol: str) -> TokenPrice | None:
        try:
            data = await self._get_json(
                f"{self.cryptocompare_url}/pricemultifull",
                {"fsyms": symbol.upper(), "tsyms": "USD"},
                throttled=False,
            )
        except Exception as e:
            logger.error("CryptoCompare API error for %s: %s", symbol, e)
            return None

        coin_data = (data.get("RAW") or {}).get(symbol.upper(), {}).get("USD")
        if not coin_data:
            return None
        return TokenPrice(
            symbol=symbol.upper(),
            price_usd=float(coin_data.get("PRICE") or 0),
            change_24h=float(coin_data.get("CHANGEPCT24HOUR") or 0),
            market_cap=coin_data.get("MKTCAP"),
            volume_24h=coin_data.get("VOLUME24HOUR"),
            last_updated=time.time(),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_token_price(self, symbol: str, chain_id: int = 1) -> TokenPrice | None:
        """Price for one symbol: cache, then CoinGecko, then CryptoCompare."""
        cached = self._cached(symbol, chain_id)
        if cached is not None:
            return cached

        price = await self._fetch_from_coingecko(symbol, chain_id)
        if price is None:
            price = await self._fetch_from_cryptocompare(symbol)
        if price is not None:
            self._store(symbol, chain_id, price)
        return price

    async def get_token_prices(
        self, symbols: list[str], chain_id: int = 1
    ) -> dict[str, TokenPrice]:
        """Prices for many symbols using one batch request for cache misses."""
        results: dict[str, TokenPrice] = {}
        uncached: list[str] = []

        for symbol in symbols:
            cached = self._cached(symbol, chain_id)
            if cached is not None:
                results[symbol.upper()] = cached
            else:
                uncached.append(symbol)

        if not uncached:
            return results

        try:
            batch = await self._fetch_batch(uncached, chain_id)
        except Exception as e:
            logger.error("Batch price fetch failed: %s", e)
            for symbol in uncached:
                price = await self.get_token_price(symbol, chain_id)
                if price is not None:
                    results[symbol.upper()] = price
            return results

        for symbol, price in batch.items():
            results[symbol] = price
            self._store(symbol, chain_id, price)
        return results

    @staticmethod
    def get_mock_price_data(symbols: list[str]) -> dict[str, TokenPrice]:
        results: dict[str, TokenPrice] = {}
        now = time.time()
        for symbol in symbols:
            price = MOCK_PRICES.get(symbol.upper())
            if price:
                results[symbol.upper()] = TokenPrice(
                    symbol=symbol.upper(),
                    price_usd=price,
                    change_24h=0.0,
                    market_cap=price * 1_000_000_000,
                    volume_24h=price * 100_000_000,
                    last_updated=now,
                )
        return results

    async def get_token_prices_with_fallback(
        self, symbols: list[str], chain_id: int = 1
    ) -> dict[str, TokenPrice]:
        """Live prices when any are available, otherwise the mock table."""
        try:
            results = await self.get_token_prices(symbols, chain_id)
        except Exception as e:
            logger.error("All price APIs failed, using mock data: %s", e)
            return self.get_mock_price_data(symbols)

        if results:
            return results

        logger.warning("No API data available, using mock prices")
        return self.get_mock_price_data(symbols)

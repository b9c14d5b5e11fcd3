"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from wallet_hub.chains.registry import COMMON_TOKENS, NETWORKS
from wallet_hub.config import (
    AppConfig,
    PriceConfig,
    ProxyConfig,
    RpcConfig,
    SessionConfig,
    StorageConfig,
)
from wallet_hub.models import (
    BalanceResult,
    NetworkHealth,
    TokenBalance,
    TokenPrice,
    WalletInfo,
)

# Well-known development account (first Hardhat/Anvil key).
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_session_config() -> SessionConfig:
    return SessionConfig(
        health_check_interval_seconds=30.0, price_refresh_interval_seconds=600.0
    )


@pytest.fixture()
def sample_rpc_config() -> RpcConfig:
    return RpcConfig(timeout=5, max_retries=2, retry_delay_seconds=0.0)


@pytest.fixture()
def sample_price_config() -> PriceConfig:
    return PriceConfig(
        coingecko_url="https://coingecko.example.com/api/v3",
        cryptocompare_url="https://cryptocompare.example.com/data",
        cache_seconds=300.0,
        min_request_interval_seconds=0.0,
        timeout=5,
    )


@pytest.fixture()
def sample_app_config(
    tmp_path: Path,
    sample_session_config: SessionConfig,
    sample_rpc_config: RpcConfig,
    sample_price_config: PriceConfig,
) -> AppConfig:
    return AppConfig(
        session=sample_session_config,
        rpc=sample_rpc_config,
        prices=sample_price_config,
        proxy=ProxyConfig(allowed_rpc_urls=("https://rpc.example.com",)),
        storage=StorageConfig(data_dir=str(tmp_path / "data")),
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def private_key() -> str:
    return TEST_PRIVATE_KEY


@pytest.fixture()
def wallet_address() -> str:
    return TEST_ADDRESS


@pytest.fixture()
def other_address() -> str:
    return OTHER_ADDRESS


@pytest.fixture()
def eth_wallet() -> WalletInfo:
    return WalletInfo(address=TEST_ADDRESS, balance="1.5", chain_id=1, chain=NETWORKS[1])


@pytest.fixture()
def polygon_wallet() -> WalletInfo:
    return WalletInfo(
        address=TEST_ADDRESS, balance="20.0", chain_id=137, chain=NETWORKS[137]
    )


@pytest.fixture()
def sample_token_balances() -> list[TokenBalance]:
    usdt, uni = COMMON_TOKENS[1]
    return [
        TokenBalance(
            token=usdt,
            balance="100000000",
            formatted_balance="100",
            balance_wei=100_000_000,
        ),
        TokenBalance(
            token=uni,
            balance="10000000000000000000",
            formatted_balance="10",
            balance_wei=10 * 10**18,
        ),
    ]


@pytest.fixture()
def sample_prices() -> dict[str, TokenPrice]:
    return {
        "ETH": TokenPrice(symbol="ETH", price_usd=2000.0, change_24h=1.5),
        "USDT": TokenPrice(symbol="USDT", price_usd=1.0),
    }


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_chain_client(sample_token_balances: list[TokenBalance]) -> MagicMock:
    client = MagicMock()
    client.get_balance_with_retry = AsyncMock(
        return_value=BalanceResult(success=True, balance="2.0")
    )
    client.get_multiple_token_balances = AsyncMock(return_value=sample_token_balances)
    client.check_network_health = AsyncMock(
        return_value=NetworkHealth(chain_id=1, block_number=19_000_000, healthy=True)
    )
    client.switch_network = AsyncMock(return_value=True)
    client.get_current_chain = MagicMock(return_value=NETWORKS[1])
    return client


@pytest.fixture()
def mock_price_oracle(sample_prices: dict[str, TokenPrice]) -> MagicMock:
    oracle = MagicMock()
    oracle.get_token_prices_with_fallback = AsyncMock(return_value=sample_prices)
    return oracle


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    session:
      health_check_interval_seconds: 15
      price_refresh_interval_seconds: 300
    rpc:
      timeout: 10
      max_retries: 2
      retry_delay_seconds: 0.5
      proxy_url: "${TEST_WALLET_HUB_PROXY}"
      endpoints:
        1: ["https://eth.example.com", "https://eth-backup.example.com"]
    prices:
      cache_seconds: 60
      min_request_interval_seconds: 2
    proxy:
      host: 0.0.0.0
      port: 9090
      allowed_rpc_urls: ["https://eth.example.com"]
    storage:
      data_dir: /tmp/wallet-hub-test
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file

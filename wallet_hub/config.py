"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .chains.registry import is_supported

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionConfig:
    health_check_interval_seconds: float = 30.0
    price_refresh_interval_seconds: float = 600.0


@dataclass(frozen=True)
class RpcConfig:
    timeout: int = 30
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    proxy_url: str = ""
    endpoints: dict[int, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceConfig:
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    cryptocompare_url: str = "https://min-api.cryptocompare.com/data"
    cache_seconds: float = 300.0
    min_request_interval_seconds: float = 6.0
    timeout: int = 15


@dataclass(frozen=True)
class ProxyConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    user_agent: str = "Magic-Wallet/1.0"
    timeout: int = 30
    allowed_rpc_urls: tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageConfig:
    data_dir: str = "~/.wallet-hub"

    @property
    def path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def preferences_file(self) -> Path:
        return self.path / "preferences.json"

    @property
    def accounts_file(self) -> Path:
        return self.path / "accounts.json"


@dataclass(frozen=True)
class AppConfig:
    session: SessionConfig = field(default_factory=SessionConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    prices: PriceConfig = field(default_factory=PriceConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_session(raw: dict[str, Any]) -> SessionConfig:
    return SessionConfig(
        health_check_interval_seconds=float(
            raw.get("health_check_interval_seconds", 30.0)
        ),
        price_refresh_interval_seconds=float(
            raw.get("price_refresh_interval_seconds", 600.0)
        ),
    )


def _build_rpc(raw: dict[str, Any]) -> RpcConfig:
    endpoints: dict[int, tuple[str, ...]] = {}
    for chain_id, urls in (raw.get("endpoints") or {}).items():
        endpoints[int(chain_id)] = tuple(urls or [])
    return RpcConfig(
        timeout=int(raw.get("timeout", 30)),
        max_retries=int(raw.get("max_retries", 3)),
        retry_delay_seconds=float(raw.get("retry_delay_seconds", 1.0)),
        proxy_url=raw.get("proxy_url") or "",
        endpoints=endpoints,
    )


def _build_prices(raw: dict[str, Any]) -> PriceConfig:
    return PriceConfig(
        coingecko_url=raw.get("coingecko_url", PriceConfig.coingecko_url),
        cryptocompare_url=raw.get("cryptocompare_url", PriceConfig.cryptocompare_url),
        cache_seconds=float(raw.get("cache_seconds", 300.0)),
        min_request_interval_seconds=float(
            raw.get("min_request_interval_seconds", 6.0)
        ),
        timeout=int(raw.get("timeout", 15)),
    )


def _build_proxy(raw: dict[str, Any]) -> ProxyConfig:
    return ProxyConfig(
        host=raw.get("host", "127.0.0.1"),
        port=int(raw.get("port", 8080)),
        user_agent=raw.get("user_agent", ProxyConfig.user_agent),
        timeout=int(raw.get("timeout", 30)),
        allowed_rpc_urls=tuple(raw.get("allowed_rpc_urls") or []),
    )


def _build_storage(raw: dict[str, Any]) -> StorageConfig:
    return StorageConfig(data_dir=raw.get("data_dir") or StorageConfig.data_dir)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        session=_build_session(raw.get("session") or {}),
        rpc=_build_rpc(raw.get("rpc") or {}),
        prices=_build_prices(raw.get("prices") or {}),
        proxy=_build_proxy(raw.get("proxy") or {}),
        storage=_build_storage(raw.get("storage") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if cfg.session.health_check_interval_seconds <= 0:
        raise ValueError("session.health_check_interval_seconds must be positive")
    if cfg.session.price_refresh_interval_seconds <= 0:
        raise ValueError("session.price_refresh_interval_seconds must be positive")

    if cfg.rpc.max_retries < 1:
        raise ValueError("rpc.max_retries must be at least 1")
    if cfg.rpc.timeout <= 0:
        raise ValueError("rpc.timeout must be positive")
    for chain_id, urls in cfg.rpc.endpoints.items():
        if not is_supported(chain_id):
            raise ValueError(f"rpc.endpoints references unknown chain '{chain_id}'")
        if not urls:
            raise ValueError(f"rpc.endpoints for chain '{chain_id}' is empty")

    if cfg.prices.cache_seconds < 0:
        raise ValueError("prices.cache_seconds must not be negative")

    if not 1 <= cfg.proxy.port <= 65535:
        raise ValueError(f"proxy.port out of range: {cfg.proxy.port}")

"""Wallet session: the single owner of connected-wallet state.

The session holds four independently replaced field groups: the wallet
itself, its token balances, the price table and the network health. Every
refresh captures the wallet identity ``(address, chain_id)`` before awaiting
a collaborator and drops its result when the identity has changed by the
time the call returns.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Coroutine, Mapping

from ..chains.registry import get_common_tokens_for_network, native_symbol
from ..config import SessionConfig
from ..errors import NetworkSwitchError
from ..interfaces.chain import ChainClient
from ..interfaces.price_oracle import PriceOracle
from ..models import NetworkHealth, TokenBalance, TokenPrice, WalletInfo
from ..portfolio import calculate_portfolio_value
from ..scheduling import PeriodicTask, schedule_periodic

logger = logging.getLogger(__name__)

GROUP_WALLET = "wallet"
GROUP_TOKEN_BALANCES = "token_balances"
GROUP_PRICES = "prices"
GROUP_NETWORK_HEALTH = "network_health"

Identity = tuple[str, int]
Listener = Callable[[str], None]


def _identity(wallet: WalletInfo | None) -> Identity | None:
    if wallet is None:
        return None
    return wallet.address.lower(), wallet.chain_id


class WalletSession:
    """Aggregates wallet, balances, prices and network health.

    Create one per application, ``await start()`` it (or use ``async with``)
    to run the periodic health check and price refresh, and ``await close()``
    on teardown.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        price_oracle: PriceOracle,
        config: SessionConfig | None = None,
    ) -> None:
        self._chain_client = chain_client
        self._oracle = price_oracle
        self._config = config or SessionConfig()

        self._wallet: WalletInfo | None = None
        self._token_balances: tuple[TokenBalance, ...] = ()
        self._price_data: dict[str, TokenPrice] = {}
        self._network_health: NetworkHealth | None = None

        self._in_flight: Counter[str] = Counter()
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self._health_task: PeriodicTask | None = None
        self._price_task: PeriodicTask | None = None
        self._started = False
        self._commits = 0

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def wallet(self) -> WalletInfo | None:
        return self._wallet

    @property
    def is_connected(self) -> bool:
        return self._wallet is not None

    @property
    def token_balances(self) -> tuple[TokenBalance, ...]:
        return self._token_balances

    @property
    def price_data(self) -> Mapping[str, TokenPrice]:
        return MappingProxyType(self._price_data)

    @property
    def network_health(self) -> NetworkHealth | None:
        return self._network_health

    @property
    def portfolio_value(self) -> float:
        return calculate_portfolio_value(
            self._wallet, self._token_balances, self._price_data
        )

    @property
    def is_connecting(self) -> bool:
        return self._in_flight["connect"] > 0 or self._in_flight["balance"] > 0

    @property
    def is_loading_tokens(self) -> bool:
        return self._in_flight["tokens"] > 0

    @property
    def is_loading_prices(self) -> bool:
        return self._in_flight["prices"] > 0

    @property
    def started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(group)``; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, group: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(group)
            except Exception as e:
                logger.error("Session listener failed for %s: %s", group, e)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._start_health_timer()
        if self._wallet is not None:
            self._start_price_timer()
        logger.debug("Wallet session started")

    async def close(self) -> None:
        self._started = False
        for task in (self._health_task, self._price_task):
            if task is not None:
                task.cancel()
        self._health_task = None
        self._price_task = None

        pending = list(self._pending)
        self._cancel_pending()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Wallet session closed")

    async def __aenter__(self) -> "WalletSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def drain(self) -> None:
        """Wait for refreshes triggered by the last identity change."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _start_health_timer(self) -> None:
        if self._health_task is not None:
            self._health_task.cancel()
        self._health_task = schedule_periodic(
            "network-health",
            self._config.health_check_interval_seconds,
            self.check_network_health,
            run_immediately=True,
        )

    def _start_price_timer(self) -> None:
        if self._price_task is not None:
            self._price_task.cancel()
        self._price_task = schedule_periodic(
            "price-refresh",
            self._config.price_refresh_interval_seconds,
            self.refresh_prices,
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _cancel_pending(self) -> None:
        for task in self._pending:
            task.cancel()
        self._pending.clear()

    # ------------------------------------------------------------------
    # Wallet identity
    # ------------------------------------------------------------------

    def _is_current(self, identity: Identity | None) -> bool:
        return _identity(self._wallet) == identity

    def _commit(self, wallet: WalletInfo | None) -> None:
        previous = self._wallet
        self._wallet = wallet
        self._commits += 1
        self._notify(GROUP_WALLET)

        if _identity(previous) != _identity(wallet):
            self._on_identity_change(previous, wallet)

    def _on_identity_change(
        self, previous: WalletInfo | None, wallet: WalletInfo | None
    ) -> None:
        self._cancel_pending()
        if self._price_task is not None:
            self._price_task.cancel()
            self._price_task = None

        self._token_balances = ()
        self._price_data = {}
        self._notify(GROUP_TOKEN_BALANCES)
        self._notify(GROUP_PRICES)

        previous_chain = previous.chain_id if previous else None
        current_chain = wallet.chain_id if wallet else None
        if self._started and previous_chain != current_chain:
            self._start_health_timer()

        if wallet is None:
            return

        self._spawn(self.refresh_token_balances())
        self._spawn(self.refresh_prices())
        if self._started:
            self._start_price_timer()

    async def connect(
        self, wallet_info: WalletInfo, preferred_chain_id: int | None = None
    ) -> bool:
        """Make ``wallet_info`` the active wallet.

        When ``preferred_chain_id`` differs from the wallet's chain, a network
        switch is attempted first. Returns ``True`` only when the preferred
        network was applied, in which case the caller should forget the stored
        preference. A failed switch commits ``wallet_info`` unchanged. If
        another connect or a disconnect lands while the switch is pending,
        nothing is committed and ``False`` is returned.

        Raises:
            NetworkSwitchError: the switch succeeded but the new chain's
                metadata could not be resolved. Nothing is committed.
        """
        if preferred_chain_id is None or preferred_chain_id == wallet_info.chain_id:
            self._commit(wallet_info)
            return False

        commits = self._commits
        self._in_flight["connect"] += 1
        try:
            try:
                switched = await self._chain_client.switch_network(preferred_chain_id)
            except Exception as e:
                logger.error("Network switch to %s failed: %s", preferred_chain_id, e)
                switched = False

            if self._commits != commits:
                logger.info(
                    "Wallet changed during switch to %s, dropping connect for %s",
                    preferred_chain_id,
                    wallet_info.address,
                )
                return False

            if not switched:
                logger.warning(
                    "Could not switch to preferred network %s, keeping chain %s",
                    preferred_chain_id,
                    wallet_info.chain_id,
                )
                self._commit(wallet_info)
                return False

            try:
                chain = self._chain_client.get_current_chain()
            except Exception as e:
                raise NetworkSwitchError(
                    f"Switched to {preferred_chain_id} but chain metadata is unavailable: {e}"
                ) from e
            if chain.chain_id != preferred_chain_id:
                raise NetworkSwitchError(
                    f"Switched to {preferred_chain_id} but client reports chain {chain.chain_id}"
                )

            self._commit(replace(wallet_info, chain_id=preferred_chain_id, chain=chain))
            # the balance in wallet_info belongs to the previous chain
            self._spawn(self.refresh_balance())
            logger.info("Applied preferred network %s", chain.name)
            return True
        finally:
            self._in_flight["connect"] -= 1

    def disconnect(self) -> None:
        """Drop the active wallet and everything derived from it."""
        self._commit(None)

    # ------------------------------------------------------------------
    # Refresh operations
    # ------------------------------------------------------------------

    async def refresh_balance(self) -> None:
        """Refresh the native balance; on failure the last balance is kept."""
        wallet = self._wallet
        if wallet is None:
            return
        identity = _identity(wallet)

        self._in_flight["balance"] += 1
        try:
            result = await self._chain_client.get_balance_with_retry(wallet.address)
        except Exception as e:
            logger.error("Balance refresh error: %s", e)
            return
        finally:
            self._in_flight["balance"] -= 1

        current = self._wallet
        if current is None or not self._is_current(identity):
            logger.debug("Discarding stale balance for %s", wallet.address)
            return
        if not result.success:
            logger.warning("Balance refresh failed: %s", result.error)
            return

        self._wallet = replace(current, balance=result.balance)
        self._notify(GROUP_WALLET)

    async def refresh_token_balances(self) -> None:
        """Replace token balances; any failure leaves the collection empty."""
        wallet = self._wallet
        if wallet is None:
            return
        identity = _identity(wallet)
        addresses = [
            token.address for token in get_common_tokens_for_network(wallet.chain_id)
        ]

        balances: list[TokenBalance] = []
        if addresses:
            self._in_flight["tokens"] += 1
            try:
                balances = await self._chain_client.get_multiple_token_balances(
                    addresses, wallet.address
                )
            except Exception as e:
                logger.error("Failed to load token balances: %s", e)
                balances = []
            finally:
                self._in_flight["tokens"] -= 1

        if not self._is_current(identity):
            logger.debug("Discarding stale token balances for %s", wallet.address)
            return
        self._token_balances = tuple(balances)
        self._notify(GROUP_TOKEN_BALANCES)

    async def refresh_prices(self) -> None:
        """Replace the price table for the native symbol and tracked tokens."""
        wallet = self._wallet
        if wallet is None:
            return
        identity = _identity(wallet)

        symbols = [native_symbol(wallet.chain_id)]
        symbols += [t.symbol for t in get_common_tokens_for_network(wallet.chain_id)]
        unique_symbols = list(dict.fromkeys(symbols))

        self._in_flight["prices"] += 1
        try:
            prices = await self._oracle.get_token_prices_with_fallback(
                unique_symbols, wallet.chain_id
            )
        except Exception as e:
            logger.error("Price refresh failed: %s", e)
            return
        finally:
            self._in_flight["prices"] -= 1

        if not self._is_current(identity):
            logger.debug("Discarding stale prices for chain %s", wallet.chain_id)
            return
        self._price_data = dict(prices)
        self._notify(GROUP_PRICES)

    async def check_network_health(self) -> None:
        try:
            health = await self._chain_client.check_network_health()
        except Exception as e:
            logger.error("Network health check failed: %s", e)
            return
        self._network_health = health
        self._notify(GROUP_NETWORK_HEALTH)

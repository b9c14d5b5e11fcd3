"""Wallet service: balances, token balances, health and signing over EVM RPC."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from eth_account import Account
from eth_utils import to_checksum_address

from ..chains.evm.client import EvmClient
from ..chains.evm.units import format_ether, format_units, is_valid_address
from ..chains.registry import NETWORKS, find_token, get_chain
from ..config import RpcConfig
from ..errors import RpcError, ValidationError
from ..models import (
    BalanceResult,
    ChainInfo,
    NetworkHealth,
    TokenBalance,
    TokenInfo,
    TransactionResult,
    WalletInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ERC-20 function selectors
BALANCE_OF_SELECTOR = "0x70a08231"
DECIMALS_SELECTOR = "0x313ce567"
SYMBOL_SELECTOR = "0x95d89b41"
NAME_SELECTOR = "0x06fdde03"

NATIVE_TRANSFER_GAS = 21000
DEFAULT_CHAIN_ID = 1


def _hex_to_int(value: str | None) -> int:
    if not value or value == "0x":
        raise RpcError("Empty eth_call result")
    return int(value, 16)


def _decode_abi_string(value: str | None) -> str:
    """Decode an ABI ``string`` return value (or a legacy ``bytes32``)."""
    if not value or value == "0x":
        raise RpcError("Empty eth_call result")
    raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    offset = int.from_bytes(raw[:32], "big")
    length = int.from_bytes(raw[offset : offset + 32], "big")
    start = offset + 32
    return raw[start : start + length].decode("utf-8", errors="replace")


def _balance_of_data(wallet_address: str) -> str:
    return BALANCE_OF_SELECTOR + "0" * 24 + wallet_address[2:].lower()


class WalletService:
    """Chain-facing operations for the connected wallet.

    One :class:`EvmClient` is kept per registered network; the service tracks
    which of them is current. All reads go through a retry helper that
    pauses ``retry_delay_seconds * attempt`` between attempts.
    """

    def __init__(self, config: RpcConfig, chain_id: int = DEFAULT_CHAIN_ID) -> None:
        self._config = config
        self._max_retries = config.max_retries
        self._retry_delay = config.retry_delay_seconds

        self._clients: dict[int, EvmClient] = {}
        for network_id, chain in NETWORKS.items():
            endpoints = config.endpoints.get(network_id, chain.rpc_urls)
            self._clients[network_id] = EvmClient(
                network_id,
                endpoints,
                timeout=config.timeout,
                proxy_url=config.proxy_url,
            )

        get_chain(chain_id)
        self._current_chain_id = chain_id
        self._token_cache: dict[tuple[int, str], TokenInfo] = {}

    @property
    def current_chain_id(self) -> int:
        return self._current_chain_id

    @property
    def client(self) -> EvmClient:
        return self._clients[self._current_chain_id]

    def get_current_chain(self) -> ChainInfo:
        return get_chain(self._current_chain_id)

    async def _with_retry(
        self, operation: Callable[[], Awaitable[T]], description: str
    ) -> T:
        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                return await operation()
            except ValidationError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    description,
                    attempt,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_delay * attempt)
        if last_error is None:
            raise ValueError(f"{description}: max_retries must be at least 1")
        raise last_error

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    async def switch_network(self, chain_id: int) -> bool:
        """Make ``chain_id`` current after verifying the endpoint answers."""
        if chain_id not in self._clients:
            logger.error("Cannot switch to unsupported network %s", chain_id)
            return False

        client = self._clients[chain_id]
        client.current_rpc_index = 0

        async def verify() -> None:
            reported = await client.get_chain_id()
            if reported != chain_id:
                raise RpcError(f"Endpoint reports chain {reported}, expected {chain_id}")

        try:
            await self._with_retry(verify, "Network switch test")
        except Exception as e:
            logger.error("Failed to switch network to %s: %s", chain_id, e)
            return False

        self._current_chain_id = chain_id
        logger.info("Switched network to %s", self.get_current_chain().name)
        return True

    async def check_network_health(self) -> NetworkHealth:
        client = self.client

        async def probe() -> tuple[int, int]:
            chain_id, block_number = await asyncio.gather(
                client.get_chain_id(), client.get_block_number()
            )
            return chain_id, block_number

        try:
            chain_id, block_number = await self._with_retry(probe, "Health check")
        except Exception as e:
            logger.error("Network health check failed: %s", e)
            return NetworkHealth(
                chain_id=client.chain_id, block_number=0, healthy=False
            )
        return NetworkHealth(chain_id=chain_id, block_number=block_number, healthy=True)

    # ------------------------------------------------------------------
    # Native balance
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> str:
        if not is_valid_address(address):
            raise ValidationError(f"Invalid address format: {address}")
        wei = await self.client.get_balance(address)
        return format_ether(wei)

    async def get_balance_with_retry(self, address: str) -> BalanceResult:
        try:
            balance = await self._with_retry(
                lambda: self.get_balance(address), "Balance fetch"
            )
        except Exception as e:
            return BalanceResult(success=False, balance="0.0", error=str(e))
        return BalanceResult(success=True, balance=balance)

    async def load_wallet(self, address: str) -> WalletInfo:
        """Build a :class:`WalletInfo` for ``address`` on the current chain."""
        if not is_valid_address(address):
            raise ValidationError(f"Invalid address format: {address}")
        chain = self.get_current_chain()
        result = await self.get_balance_with_retry(address)
        if not result.success:
            logger.warning("Initial balance fetch failed: %s", result.error)
        return WalletInfo(
            address=address,
            balance=result.balance,
            chain_id=chain.chain_id,
            chain=chain,
        )

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def get_token_info(self, token_address: str) -> TokenInfo:
        """Registry metadata, falling back to on-chain ERC-20 getters."""
        chain_id = self._current_chain_id
        known = find_token(chain_id, token_address)
        if known is not None:
            return known

        key = (chain_id, token_address.lower())
        if key in self._token_cache:
            return self._token_cache[key]

        client = self.client
        decimals_hex, symbol_hex, name_hex = await asyncio.gather(
            client.call(token_address, DECIMALS_SELECTOR),
            client.call(token_address, SYMBOL_SELECTOR),
            client.call(token_address, NAME_SELECTOR),
        )
        info = TokenInfo(
            address=token_address,
            symbol=_decode_abi_string(symbol_hex),
            name=_decode_abi_string(name_hex),
            decimals=_hex_to_int(decimals_hex),
            chain_id=chain_id,
        )
        self._token_cache[key] = info
        return info

    async def get_token_balance(
        self, token_address: str, wallet_address: str
    ) -> TokenBalance:
        if not is_valid_address(token_address) or not is_valid_address(wallet_address):
            raise ValidationError(
                f"Invalid address format - Token: {token_address}, Wallet: {wallet_address}"
            )

        async def fetch() -> TokenBalance:
            info, raw = await asyncio.gather(
                self.get_token_info(token_address),
                self.client.call(token_address, _balance_of_data(wallet_address)),
            )
            balance_wei = _hex_to_int(raw)
            return TokenBalance(
                token=info,
                balance=str(balance_wei),
                formatted_balance=format_units(balance_wei, info.decimals),
                balance_wei=balance_wei,
            )

        return await self._with_retry(fetch, f"Token balance {token_address}")

    async def get_multiple_token_balances(
        self, token_addresses: list[str], wallet_address: str
    ) -> list[TokenBalance]:
        """Fetch balances concurrently; tokens that fail are left out."""
        results = await asyncio.gather(
            *(
                self.get_token_balance(address, wallet_address)
                for address in token_addresses
            ),
            return_exceptions=True,
        )

        balances: list[TokenBalance] = []
        failed = 0
        for address, result in zip(token_addresses, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.error("Failed to get balance for token %s: %s", address, result)
            else:
                balances.append(result)

        if failed:
            logger.warning(
                "Failed to load %d out of %d tokens", failed, len(token_addresses)
            )
        return balances

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def send_native_transfer(
        self, private_key: str, to: str, amount_wei: int
    ) -> TransactionResult:
        """Sign a legacy native-currency transfer and broadcast it."""
        client = self.client
        try:
            account = Account.from_key(private_key)
            nonce = await client.get_transaction_count(account.address, "pending")
            gas_price = await client.get_gas_price()
            tx = {
                "chainId": self._current_chain_id,
                "nonce": nonce,
                "to": to_checksum_address(to),
                "value": amount_wei,
                "gas": NATIVE_TRANSFER_GAS,
                "gasPrice": gas_price,
            }
            signed = account.sign_transaction(tx)
            tx_hash = await client.send_raw_transaction(
                "0x" + bytes(signed.raw_transaction).hex()
            )
        except Exception as e:
            logger.error("Transaction failed: %s", e)
            return TransactionResult(success=False, error=str(e))

        if not tx_hash:
            return TransactionResult(success=False, error="Empty hash returned")
        logger.info("Transaction broadcast: %s", tx_hash)
        return TransactionResult(success=True, tx_hash=tx_hash)

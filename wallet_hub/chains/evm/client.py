"""EVM JSON-RPC client with endpoint fallback and optional proxy relay."""
from __future__ import annotations

import itertools
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...errors import RpcError

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class EvmClient:
    """JSON-RPC client for one EVM chain with automatic endpoint fallback."""

    def __init__(
        self,
        chain_id: int,
        endpoints: tuple[str, ...] | list[str],
        timeout: int = 30,
        proxy_url: str = "",
    ) -> None:
        if not endpoints:
            raise ValueError(f"No RPC endpoints configured for chain {chain_id}")
        self.chain_id = chain_id
        self.endpoints = list(endpoints)
        self.timeout = timeout
        self.proxy_url = proxy_url
        self.current_rpc_index = 0

    @staticmethod
    def _payload(method: str, params: list[Any]) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params,
        }

    @staticmethod
    def _unwrap(result: dict[str, Any]) -> Any:
        if "error" in result and result["error"]:
            error = result["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise RpcError(f"RPC Error: {message}")
        return result.get("result")

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    raise RpcError(f"HTTP {response.status} from {url}")
                return await response.json()

    async def rpc_call(self, method: str, params: list[Any] | None = None) -> Any:
        """Make RPC call with fallback to alternative endpoints, then the proxy."""
        payload = self._payload(method, params or [])

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                result = self._unwrap(await self._post(rpc_url, payload))
                if rpc_index != self.current_rpc_index:
                    logger.info("Switched to RPC endpoint: %s", rpc_url)
                    self.current_rpc_index = rpc_index
                return result
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        if self.proxy_url:
            try:
                return await self._call_via_proxy(payload)
            except Exception as e:
                last_error = e
                logger.warning("Proxy RPC also failed: %s", e)

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def _call_via_proxy(self, payload: dict[str, Any]) -> Any:
        envelope = {
            "chainId": self.chain_id,
            "rpcUrl": self.endpoints[0],
            "body": payload,
        }
        return self._unwrap(await self._post(self.proxy_url, envelope))

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    async def get_chain_id(self) -> int:
        return int(await self.rpc_call("eth_chainId"), 16)

    async def get_block_number(self) -> int:
        return int(await self.rpc_call("eth_blockNumber"), 16)

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return int(await self.rpc_call("eth_getBalance", [address, block]), 16)

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        return await self.rpc_call("eth_call", [{"to": to, "data": data}, block])

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self.rpc_call("eth_getTransactionCount", [address, block]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.rpc_call("eth_gasPrice"), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self.rpc_call("eth_sendRawTransaction", [raw_tx])

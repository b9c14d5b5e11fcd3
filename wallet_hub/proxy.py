"""JSON-RPC proxy: forwards allow-listed RPC calls for browser clients."""
from __future__ import annotations

import asyncio
import json
import logging
import ssl
from typing import AsyncIterator

import aiohttp
import certifi
from aiohttp import web

from .chains.registry import default_allowed_rpc_urls
from .config import ProxyConfig

logger = logging.getLogger(__name__)

RPC_PATH = "/api/rpc"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

CONFIG_KEY = web.AppKey("config", ProxyConfig)
ALLOWED_KEY = web.AppKey("allowed_rpc_urls", frozenset)
UPSTREAM_KEY = web.AppKey("upstream", aiohttp.ClientSession)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status, headers=CORS_HEADERS)


async def handle_rpc(request: web.Request) -> web.Response:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None

    required = ("chainId", "rpcUrl", "body")
    if not isinstance(payload, dict) or not all(payload.get(k) for k in required):
        return _error("Missing required parameters: chainId, rpcUrl, body", 400)

    rpc_url = payload["rpcUrl"]
    if rpc_url not in request.app[ALLOWED_KEY]:
        logger.warning("Rejected RPC URL %s", rpc_url)
        return _error("RPC URL not allowed", 403)

    config = request.app[CONFIG_KEY]
    upstream = request.app[UPSTREAM_KEY]
    try:
        async with upstream.post(
            rpc_url,
            json=payload["body"],
            headers={"Content-Type": "application/json", "User-Agent": config.user_agent},
        ) as response:
            status = response.status
            text = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("Proxy error for %s: %s", rpc_url, e)
        return _error("Internal server error", 500)

    if status >= 400:
        logger.error("RPC request to %s failed: HTTP %s", rpc_url, status)

    return web.Response(
        text=text,
        status=status,
        content_type="application/json",
        headers=CORS_HEADERS,
    )


async def handle_preflight(request: web.Request) -> web.Response:
    return web.Response(status=200, headers=CORS_HEADERS)


def create_app(
    config: ProxyConfig, upstream: aiohttp.ClientSession | None = None
) -> web.Application:
    """Build the proxy application.

    Without ``upstream`` the app opens its own client session on startup and
    closes it on cleanup.
    """
    app = web.Application()
    app[CONFIG_KEY] = config
    app[ALLOWED_KEY] = frozenset(config.allowed_rpc_urls or default_allowed_rpc_urls())

    if upstream is not None:
        app[UPSTREAM_KEY] = upstream
    else:

        async def upstream_ctx(app: web.Application) -> AsyncIterator[None]:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=ssl_context),
                timeout=aiohttp.ClientTimeout(total=config.timeout),
            )
            app[UPSTREAM_KEY] = session
            yield
            await session.close()

        app.cleanup_ctx.append(upstream_ctx)

    app.router.add_post(RPC_PATH, handle_rpc)
    app.router.add_route("OPTIONS", RPC_PATH, handle_preflight)
    return app


async def start_proxy(config: ProxyConfig) -> web.AppRunner:
    """Start serving on ``config.host:config.port``; returns the runner."""
    runner = web.AppRunner(create_app(config))
    await runner.setup()
    site = web.TCPSite(runner, config.host, config.port)
    await site.start()
    logger.info("RPC proxy listening on http://%s:%d%s", config.host, config.port, RPC_PATH)
    return runner

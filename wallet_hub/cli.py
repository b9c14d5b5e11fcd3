"""Command-line interface for wallet-hub."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from dataclasses import replace

from .chains.evm.units import format_address
from .config import AppConfig, load_config
from .errors import WalletHubError
from .keystore import Keystore
from .logging_setup import configure_logging
from .oracles import CoinGeckoOracle
from .preferences import PreferenceStore
from .proxy import start_proxy
from .services import TransferService, WalletService, WalletSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="wallet-hub",
        description="Multi-chain EVM wallet client",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("portfolio", "Show balances, prices and portfolio value"),
        ("watch", "Keep a wallet session running and log updates"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("address", help="Wallet address")
        p.add_argument("--chain", type=int, default=1, help="Chain id (default: 1)")

    prefer = sub.add_parser(
        "prefer-network", help="Switch to this network on the next connect"
    )
    prefer.add_argument("chain_id", type=int)

    accounts = sub.add_parser("accounts", help="Manage keystore accounts")
    accounts_sub = accounts.add_subparsers(dest="accounts_command")
    accounts_sub.add_parser("list", help="List stored accounts")
    imp = accounts_sub.add_parser("import", help="Import a private key")
    imp.add_argument("name")
    gen = accounts_sub.add_parser("generate", help="Generate a new account")
    gen.add_argument("name")

    send = sub.add_parser("send", help="Send native currency")
    send.add_argument("account_id")
    send.add_argument("to")
    send.add_argument("amount")
    send.add_argument("--chain", type=int, default=1, help="Chain id (default: 1)")

    proxy = sub.add_parser("proxy", help="Run the JSON-RPC proxy")
    proxy.add_argument("--host", default=None)
    proxy.add_argument("--port", type=int, default=None)

    return parser


def _build_session(config: AppConfig, chain_id: int) -> tuple[WalletService, WalletSession]:
    wallet_service = WalletService(config.rpc, chain_id=chain_id)
    session = WalletSession(
        wallet_service, CoinGeckoOracle(config.prices), config.session
    )
    return wallet_service, session


async def _connect(
    config: AppConfig, wallet_service: WalletService, session: WalletSession, address: str
) -> None:
    """Connect ``address``, applying and then forgetting a stored preferred network."""
    preferences = PreferenceStore(config.storage.preferences_file)
    wallet = await wallet_service.load_wallet(address)
    preferred = preferences.get_preferred_network()
    if await session.connect(wallet, preferred_chain_id=preferred):
        preferences.clear_preferred_network()


def _print_portfolio(session: WalletSession) -> None:
    wallet = session.wallet
    if wallet is None:
        print("No wallet connected")
        return

    print(f"{format_address(wallet.address)} on {wallet.chain.name}")
    print(f"  {wallet.chain.symbol}: {wallet.balance}")
    for holding in session.token_balances:
        print(f"  {holding.token.symbol}: {holding.formatted_balance}")
    if session.price_data:
        print("Prices:")
        for symbol, price in sorted(session.price_data.items()):
            print(f"  {symbol}: ${price.price_usd:,.4f} ({price.change_24h:+.2f}%)")
    print(f"Portfolio value: ${session.portfolio_value:,.2f}")
    health = session.network_health
    if health is not None:
        state = "healthy" if health.healthy else "unhealthy"
        print(f"Network: chain {health.chain_id}, block {health.block_number} ({state})")


async def _portfolio(config: AppConfig, args: argparse.Namespace) -> None:
    wallet_service, session = _build_session(config, args.chain)
    async with session:
        await _connect(config, wallet_service, session, args.address)
        await session.drain()
        await session.check_network_health()
        _print_portfolio(session)


async def _watch(config: AppConfig, args: argparse.Namespace) -> None:
    wallet_service, session = _build_session(config, args.chain)

    def on_change(group: str) -> None:
        if group == "prices":
            logger.info("Portfolio value: $%.2f", session.portfolio_value)
        elif group == "network_health" and session.network_health is not None:
            health = session.network_health
            logger.info(
                "Chain %s block %s healthy=%s",
                health.chain_id,
                health.block_number,
                health.healthy,
            )

    session.add_listener(on_change)
    async with session:
        await _connect(config, wallet_service, session, args.address)
        logger.info("Watching %s (Ctrl+C to stop)", args.address)
        while True:
            await asyncio.sleep(config.session.health_check_interval_seconds)
            await session.refresh_balance()


def _accounts(config: AppConfig, args: argparse.Namespace) -> None:
    keystore = Keystore(config.storage.accounts_file)

    if args.accounts_command == "list":
        for account in keystore.list_accounts():
            print(f"{account.id}  {account.name}  {account.address}  ({account.account_type})")
    elif args.accounts_command == "import":
        private_key = getpass.getpass("Private key: ")
        password = getpass.getpass("Password: ")
        record = keystore.import_private_key(args.name, private_key, password)
        print(f"Imported {record.address} as {record.id}")
    elif args.accounts_command == "generate":
        password = getpass.getpass("Password: ")
        record = keystore.generate_account(args.name, password)
        print(f"Generated {record.address} as {record.id}")
    else:
        print("Usage: wallet-hub accounts {list,import,generate}")
        sys.exit(1)


async def _send(config: AppConfig, args: argparse.Namespace) -> None:
    keystore = Keystore(config.storage.accounts_file)
    account = keystore.get_account(args.account_id)
    wallet_service, session = _build_session(config, args.chain)
    transfers = TransferService(wallet_service, keystore)

    async with session:
        await session.connect(await wallet_service.load_wallet(account.address))
        password = getpass.getpass("Password: ")
        result = await transfers.send_native(
            session, args.account_id, password, args.to, args.amount
        )

    if result.success:
        print(f"Transaction sent: {result.tx_hash}")
    else:
        print(f"Transaction failed: {result.error}")
        sys.exit(1)


async def _proxy(config: AppConfig, args: argparse.Namespace) -> None:
    proxy_config = config.proxy
    if args.host or args.port:
        proxy_config = replace(
            proxy_config,
            host=args.host or proxy_config.host,
            port=args.port or proxy_config.port,
        )
    runner = await start_proxy(proxy_config)
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "portfolio":
        await _portfolio(config, args)
    elif args.command == "watch":
        await _watch(config, args)
    elif args.command == "prefer-network":
        PreferenceStore(config.storage.preferences_file).set_preferred_network(args.chain_id)
        print(f"Preferred network set to {args.chain_id}")
    elif args.command == "accounts":
        _accounts(config, args)
    elif args.command == "send":
        await _send(config, args)
    elif args.command == "proxy":
        await _proxy(config, args)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except WalletHubError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass

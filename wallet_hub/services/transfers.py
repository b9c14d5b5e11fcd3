"""Native-currency send flow: validate, unlock, sign, broadcast."""
from __future__ import annotations

import logging

from eth_account import Account

from ..chains.evm.units import ETHER_DECIMALS, is_valid_address, parse_units
from ..errors import CredentialError, ValidationError
from ..keystore import Keystore, UserSession, unlocked_key
from ..models import TransactionResult, WalletInfo
from .session import WalletSession
from .wallet import WalletService

logger = logging.getLogger(__name__)


def validate_transfer(wallet: WalletInfo | None, to: str, amount: str) -> int:
    """Check a transfer request and return the amount in wei.

    Raises:
        ValidationError: no wallet, bad recipient, non-positive amount or
            amount above the wallet balance.
    """
    if wallet is None:
        raise ValidationError("Connect a wallet first")
    if not is_valid_address(to):
        raise ValidationError("Invalid recipient address")

    amount_wei = parse_units(amount, ETHER_DECIMALS)
    if amount_wei <= 0:
        raise ValidationError("Amount must be greater than 0")

    try:
        balance_wei = parse_units(wallet.balance, ETHER_DECIMALS)
    except ValidationError:
        balance_wei = 0
    if amount_wei > balance_wei:
        raise ValidationError("Insufficient balance")
    return amount_wei


class TransferService:
    """Send native currency from a keystore account that owns the session wallet."""

    def __init__(self, wallet_service: WalletService, keystore: Keystore) -> None:
        self._wallet_service = wallet_service
        self._keystore = keystore

    async def send_native(
        self,
        session: WalletSession,
        account_id: str,
        password: str,
        to: str,
        amount: str,
    ) -> TransactionResult:
        wallet = session.wallet
        if wallet is None:
            raise ValidationError("Connect a wallet first")
        amount_wei = validate_transfer(wallet, to, amount)

        if self._wallet_service.current_chain_id != wallet.chain_id:
            raise ValidationError(
                f"Wallet is on chain {wallet.chain_id} but the client is on "
                f"chain {self._wallet_service.current_chain_id}"
            )

        user_session = UserSession(account_id=account_id, password=password)
        with unlocked_key(self._keystore, user_session) as private_key:
            signer = Account.from_key(private_key).address
            if signer.lower() != wallet.address.lower():
                raise CredentialError(
                    f"Account {account_id} does not control {wallet.address}"
                )
            result = await self._wallet_service.send_native_transfer(
                private_key, to, amount_wei
            )

        if result.success:
            logger.info("Sent %s %s to %s", amount, wallet.chain.symbol, to)
            await session.refresh_balance()
        return result

"""Portfolio valuation."""
from __future__ import annotations

import math
from typing import Iterable, Mapping

from .chains.registry import native_symbol
from .models import TokenBalance, TokenPrice, WalletInfo


def _amount(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def calculate_portfolio_value(
    wallet: WalletInfo | None,
    token_balances: Iterable[TokenBalance],
    price_data: Mapping[str, TokenPrice],
) -> float:
    """USD value of the native balance plus every priced token balance.

    Holdings without a price entry contribute nothing. ``math.fsum`` keeps the
    total independent of the order of ``token_balances``.
    """
    if wallet is None or not price_data:
        return 0.0

    contributions: list[float] = []

    native_price = price_data.get(native_symbol(wallet.chain_id))
    if native_price is not None:
        contributions.append(_amount(wallet.balance) * native_price.price_usd)

    for holding in token_balances:
        price = price_data.get(holding.token.symbol.upper())
        if price is None:
            continue
        contributions.append(_amount(holding.formatted_balance) * price.price_usd)

    return math.fsum(contributions)

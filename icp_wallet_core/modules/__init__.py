"""
Functional modules for WalletCoreClient

Provides high-level operations:
- AccountCodec: Account and subaccount parsing/encoding
- PoolLocator: Token/ICP pool lookup
- PriceOracle: ICP/USD and token prices
- BalanceAggregator: Rate-limited balance queries
"""

from .account import (
    AccountCodec,
    parse_subaccount,
    resolve_subaccount,
    parse_account,
    parse_long_account,
    encode_long_account,
    describe_subaccount,
)
from .pool import PoolLocator
from .price import PriceOracle, price_from_pool_state
from .balance import BalanceAggregator, RequestSpacer

__all__ = [
    # Accounts
    "AccountCodec",
    "parse_subaccount",
    "resolve_subaccount",
    "parse_account",
    "parse_long_account",
    "encode_long_account",
    "describe_subaccount",
    # Pools and prices
    "PoolLocator",
    "PriceOracle",
    "price_from_pool_state",
    # Balances
    "BalanceAggregator",
    "RequestSpacer",
]

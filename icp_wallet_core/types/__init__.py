"""
Type definitions for the wallet core
"""

from .principal import Principal, is_valid_principal
from .common import (
    Token,
    TokenRef,
    ICP,
    CKUSDC,
    ICP_LEDGER_ID,
    CKUSDC_LEDGER_ID,
    KNOWN_TOKENS,
    get_token_decimals,
    register_token,
)
from .account import (
    SubaccountFormat,
    NumberSubaccount,
    HexSubaccount,
    BytesSubaccount,
    PrincipalSubaccount,
    TextSubaccount,
    SubaccountDescriptor,
    SubaccountInfo,
    ParsedAccount,
    CodecResult,
    DEFAULT_SUBACCOUNT,
    SUBACCOUNT_LENGTH,
    MAX_SUBACCOUNT_INDEX,
)
from .pool import PoolIdentity, PoolState, Q96, make_pair_key, sort_tokens
from .price import PriceCacheEntry
from .balance import BalanceRecord, BalanceState, BalanceKey

__all__ = [
    # Identity
    "Principal",
    "is_valid_principal",
    # Tokens
    "Token",
    "TokenRef",
    "ICP",
    "CKUSDC",
    "ICP_LEDGER_ID",
    "CKUSDC_LEDGER_ID",
    "KNOWN_TOKENS",
    "get_token_decimals",
    "register_token",
    # Accounts
    "SubaccountFormat",
    "NumberSubaccount",
    "HexSubaccount",
    "BytesSubaccount",
    "PrincipalSubaccount",
    "TextSubaccount",
    "SubaccountDescriptor",
    "SubaccountInfo",
    "ParsedAccount",
    "CodecResult",
    "DEFAULT_SUBACCOUNT",
    "SUBACCOUNT_LENGTH",
    "MAX_SUBACCOUNT_INDEX",
    # Pools
    "PoolIdentity",
    "PoolState",
    "Q96",
    "make_pair_key",
    "sort_tokens",
    # Prices
    "PriceCacheEntry",
    # Balances
    "BalanceRecord",
    "BalanceState",
    "BalanceKey",
]

"""
ICP Wallet Core - Token prices and account addressing for the Internet Computer

Provides:
- AMM pool lookup and fixed-point price derivation with TTL caches
- ICRC-1 account and subaccount parsing/encoding
- Rate-limited, batched ledger balance queries
"""

from .client import WalletCoreClient
from .types import (
    Principal,
    Token,
    TokenRef,
    PoolIdentity,
    PoolState,
    ParsedAccount,
    SubaccountInfo,
    CodecResult,
    NumberSubaccount,
    HexSubaccount,
    BytesSubaccount,
    PrincipalSubaccount,
    TextSubaccount,
    BalanceRecord,
    BalanceState,
    PriceCacheEntry,
)
from .errors import (
    WalletCoreError,
    InvalidFormat,
    PoolNotFound,
    InsufficientData,
    CollaboratorUnavailable,
    ConfigurationError,
    ErrorCode,
)
from .modules import (
    AccountCodec,
    PoolLocator,
    PriceOracle,
    BalanceAggregator,
    RequestSpacer,
    parse_account,
    parse_subaccount,
    encode_long_account,
)
from .infra import (
    CanisterGateway,
    GatewayClientConfig,
    PoolFactory,
    PoolStateSource,
    LedgerClient,
    JsonFileStore,
    MemoryStore,
    TtlCache,
    PoolCache,
)

__all__ = [
    # Client
    "WalletCoreClient",
    # Types
    "Principal",
    "Token",
    "TokenRef",
    "PoolIdentity",
    "PoolState",
    "ParsedAccount",
    "SubaccountInfo",
    "CodecResult",
    "NumberSubaccount",
    "HexSubaccount",
    "BytesSubaccount",
    "PrincipalSubaccount",
    "TextSubaccount",
    "BalanceRecord",
    "BalanceState",
    "PriceCacheEntry",
    # Errors
    "WalletCoreError",
    "InvalidFormat",
    "PoolNotFound",
    "InsufficientData",
    "CollaboratorUnavailable",
    "ConfigurationError",
    "ErrorCode",
    # Modules
    "AccountCodec",
    "PoolLocator",
    "PriceOracle",
    "BalanceAggregator",
    "RequestSpacer",
    "parse_account",
    "parse_subaccount",
    "encode_long_account",
    # Infrastructure
    "CanisterGateway",
    "GatewayClientConfig",
    "PoolFactory",
    "PoolStateSource",
    "LedgerClient",
    "JsonFileStore",
    "MemoryStore",
    "TtlCache",
    "PoolCache",
]

__version__ = "0.1.0"

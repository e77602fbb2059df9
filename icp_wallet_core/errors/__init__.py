"""
Error definitions for the wallet core
"""

from .exceptions import (
    ErrorCode,
    WalletCoreError,
    InvalidFormat,
    CollaboratorUnavailable,
    PoolNotFound,
    InsufficientData,
    ConfigurationError,
)

__all__ = [
    "ErrorCode",
    "WalletCoreError",
    "InvalidFormat",
    "CollaboratorUnavailable",
    "PoolNotFound",
    "InsufficientData",
    "ConfigurationError",
]

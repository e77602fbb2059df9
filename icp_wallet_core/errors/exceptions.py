"""
Exception definitions for the wallet core
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for wallet core operations

    1xxx - Collaborator (gateway/canister) errors
    2xxx - Account/subaccount format errors
    4xxx - Pool errors
    9xxx - Configuration errors
    """
    # Collaborator errors (recoverable)
    COLLABORATOR_CONNECTION_FAILED = "1001"
    COLLABORATOR_TIMEOUT = "1002"
    COLLABORATOR_RATE_LIMITED = "1003"
    COLLABORATOR_INVALID_RESPONSE = "1004"

    # Format errors (recoverable by re-entering input)
    INVALID_PRINCIPAL = "2001"
    INVALID_SUBACCOUNT = "2002"
    INVALID_ACCOUNT = "2003"
    INVALID_CHECKSUM = "2004"
    SUBACCOUNT_OUT_OF_RANGE = "2005"
    NON_CANONICAL = "2006"

    # Pool errors
    POOL_NOT_FOUND = "4001"
    POOL_INSUFFICIENT_DATA = "4003"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class WalletCoreError(Exception):
    """
    Base exception for all wallet core errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class InvalidFormat(WalletCoreError):
    """
    Malformed principal, account or subaccount text - recoverable

    Returned (not raised) by the account codec. The caller fixes the
    input and tries again.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_ACCOUNT,
        value: Optional[str] = None,
        source_format: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            details={"value": value, "source_format": source_format},
        )
        self.value = value
        self.source_format = source_format

    @classmethod
    def principal(cls, value: str, reason: str) -> "InvalidFormat":
        return cls(
            f"Invalid principal {value!r}: {reason}",
            ErrorCode.INVALID_PRINCIPAL,
            value=value,
            source_format="principal",
        )

    @classmethod
    def subaccount(cls, source_format: str, value: str, reason: str) -> "InvalidFormat":
        return cls(
            f"Invalid {source_format} subaccount {value!r}: {reason}",
            ErrorCode.INVALID_SUBACCOUNT,
            value=value,
            source_format=source_format,
        )

    @classmethod
    def out_of_range(cls, source_format: str, value: str, limit: int) -> "InvalidFormat":
        return cls(
            f"Subaccount {value!r} out of range (max {limit})",
            ErrorCode.SUBACCOUNT_OUT_OF_RANGE,
            value=value,
            source_format=source_format,
        )

    @classmethod
    def bad_checksum(cls, value: str) -> "InvalidFormat":
        return cls(
            f"Checksum mismatch in {value!r}",
            ErrorCode.INVALID_CHECKSUM,
            value=value,
        )

    @classmethod
    def non_canonical(cls, value: str, reason: str) -> "InvalidFormat":
        return cls(
            f"Non-canonical encoding {value!r}: {reason}",
            ErrorCode.NON_CANONICAL,
            value=value,
        )


class CollaboratorUnavailable(WalletCoreError):
    """
    Transport or timeout failure from an external query - recoverable

    Raised when:
    - The gateway cannot be reached
    - A request times out
    - The gateway rate limits us
    - A reply cannot be decoded
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.COLLABORATOR_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "CollaboratorUnavailable":
        return cls(
            f"Failed to connect to gateway: {endpoint}",
            ErrorCode.COLLABORATOR_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "CollaboratorUnavailable":
        return cls(
            f"Gateway request timed out after {timeout_seconds}s",
            ErrorCode.COLLABORATOR_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "CollaboratorUnavailable":
        return cls(
            "Gateway rate limit exceeded",
            ErrorCode.COLLABORATOR_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def invalid_response(cls, endpoint: str, reason: str) -> "CollaboratorUnavailable":
        return cls(
            f"Invalid gateway response: {reason}",
            ErrorCode.COLLABORATOR_INVALID_RESPONSE,
            endpoint=endpoint,
        )


class PoolNotFound(WalletCoreError):
    """
    No AMM pool exists for the pair yet - recoverable by retrying later

    Never cached as a permanent negative result: pools may be created
    at any time.
    """

    def __init__(
        self,
        message: str,
        pair_key: Optional[str] = None,
    ):
        super().__init__(
            message,
            ErrorCode.POOL_NOT_FOUND,
            recoverable=True,
            details={"pair_key": pair_key},
        )
        self.pair_key = pair_key

    @classmethod
    def for_pair(cls, pair_key: str, reason: str = "") -> "PoolNotFound":
        suffix = f": {reason}" if reason else ""
        return cls(f"Pool not found for {pair_key}{suffix}", pair_key=pair_key)


class InsufficientData(WalletCoreError):
    """
    Pool metadata is missing required fields - not recoverable

    Raised when:
    - The factory returns a pool without a valid canister id
    - Pool state lacks token addresses or sqrt price
    - Pool state does not contain the priced token
    """

    def __init__(
        self,
        message: str,
        pool_id: Optional[str] = None,
        missing: Optional[str] = None,
    ):
        super().__init__(
            message,
            ErrorCode.POOL_INSUFFICIENT_DATA,
            recoverable=False,
            details={"pool_id": pool_id, "missing": missing},
        )
        self.pool_id = pool_id
        self.missing = missing

    @classmethod
    def missing_field(cls, pool_id: str, field_name: str) -> "InsufficientData":
        return cls(
            f"Pool {pool_id} metadata missing {field_name}",
            pool_id=pool_id,
            missing=field_name,
        )


class ConfigurationError(WalletCoreError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)

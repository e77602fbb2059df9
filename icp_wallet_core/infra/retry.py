"""
Retries and correlation ids for collaborator queries

Factory, pool state and ledger queries go through call_with_retry. Work
that spans many queries (a bulk refresh) runs inside a CorrelationContext
so every log line it produces carries the same id; the id is rendered by
the logging filter installed in config.setup_logging.
"""

import asyncio
import contextvars
import logging
import uuid
from typing import Awaitable, Callable, Optional, Sequence, Tuple, TypeVar

from ..errors import ErrorCode, WalletCoreError, CollaboratorUnavailable
from ..config import config as global_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "icp_wallet_core_correlation_id", default=None
)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Bind an id to the current context; reset with _correlation_id.reset(token)"""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Scope a fresh correlation id to a block

    The id is bound on enter and the previous one restored on exit, so
    contexts nest. asyncio tasks created inside the block inherit it.

    Usage:
        with CorrelationContext("refresh") as cid:
            await aggregator.refresh_all(tokens)
    """

    def __init__(self, prefix: Optional[str] = None):
        suffix = generate_correlation_id()
        self.correlation_id = f"{prefix}_{suffix}" if prefix else suffix
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        token, self._token = self._token, None
        if token is not None:
            _correlation_id.reset(token)


def log_with_correlation(level: int, message: str, operation_name: str, **context) -> None:
    """
    Log a retry event for an operation

    The correlation id and any keyword context travel as record attributes
    for handlers that want structured fields.
    """
    logger.log(
        level,
        f"{operation_name}: {message}",
        extra={"operation": operation_name, "correlation": get_correlation_id(), **context},
    )


# ========== Classification ==========

# Substrings of plain exception messages that indicate a transient failure,
# mapped to the code used when such an error is wrapped
_TRANSIENT_MARKERS: Sequence[Tuple[Tuple[str, ...], ErrorCode]] = (
    (("timeout", "timed out", "etimedout"), ErrorCode.COLLABORATOR_TIMEOUT),
    (("rate limit", "too many requests"), ErrorCode.COLLABORATOR_RATE_LIMITED),
    (("connection", "network", "socket", "econnreset", "enotfound"), ErrorCode.COLLABORATOR_CONNECTION_FAILED),
    (("502", "503", "504", "service unavailable", "temporarily unavailable"), ErrorCode.COLLABORATOR_CONNECTION_FAILED),
)

RECOVERABLE_KEYWORDS = tuple(marker for markers, _ in _TRANSIENT_MARKERS for marker in markers)


def classify_error(error: Exception) -> Tuple[bool, Optional[ErrorCode]]:
    """
    Decide whether an error is worth retrying

    Wallet core errors carry their own code: collaborator failures retry
    unless the reply itself was malformed; domain errors never retry.
    Anything else is matched against transient-failure message markers.

    Returns:
        (is_recoverable, error_code); the code is None for unrecognized
        plain exceptions
    """
    if isinstance(error, CollaboratorUnavailable):
        return error.code != ErrorCode.COLLABORATOR_INVALID_RESPONSE, error.code
    if isinstance(error, WalletCoreError):
        return False, error.code

    text = str(error).lower()
    for markers, code in _TRANSIENT_MARKERS:
        if any(marker in text for marker in markers):
            return True, code
    return False, None


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `operation()` until it succeeds, fails fatally or attempts run out

    The n-th retry waits `retry_delay * n` (linear backoff).

    Args:
        operation: Zero-argument coroutine factory, one call per attempt
        operation_name: Label for log lines and wrapped errors
        max_retries: Total attempts (defaults to config.gateway.max_retries)
        retry_delay: Backoff unit in seconds (defaults to config.gateway.retry_delay_seconds)
        sleep: Awaitable sleep, injectable for tests

    Raises:
        WalletCoreError: As raised by the last attempt
        CollaboratorUnavailable: Wrapping a plain transient error once attempts run out
        Exception: Any plain non-transient error, unchanged and without retry
    """
    if max_retries is None:
        max_retries = global_config.gateway.max_retries
    if retry_delay is None:
        retry_delay = global_config.gateway.retry_delay_seconds
    attempts = max(1, max_retries)

    attempt = 0
    while True:
        attempt += 1
        try:
            result = await operation()
        except Exception as e:
            recoverable, code = classify_error(e)
            if recoverable and attempt < attempts:
                delay = retry_delay * attempt
                log_with_correlation(
                    logging.WARNING,
                    f"attempt {attempt}/{attempts} failed ({e}), retrying in {delay:.2f}s",
                    operation_name,
                    attempt=attempt,
                )
                await sleep(delay)
                continue

            log_with_correlation(
                logging.WARNING if recoverable else logging.ERROR,
                f"giving up after {attempt}/{attempts} attempts: {e}",
                operation_name,
                attempt=attempt,
            )
            if isinstance(e, WalletCoreError) or not recoverable:
                raise
            raise CollaboratorUnavailable(
                f"{operation_name} failed after {attempt} attempts: {e}",
                code=code,
                original_error=e,
            ) from e

        if attempt > 1:
            log_with_correlation(logging.INFO, f"succeeded on attempt {attempt}", operation_name, attempt=attempt)
        return result

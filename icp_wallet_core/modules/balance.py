"""
Balance Aggregator Module

Fetches ledger balances for many tokens without flooding the ledgers:
request starts are spaced globally, bulk refreshes run in small batches
with a pause between batches, and each record carries its own state so
one failing token never blocks the rest.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..types import (
    BalanceKey,
    BalanceRecord,
    BalanceState,
    SubaccountDescriptor,
    SUBACCOUNT_LENGTH,
)
from ..errors import ErrorCode, InvalidFormat
from ..infra.gateway import LedgerClient
from ..infra.retry import CorrelationContext
from ..config import BalanceConfig, config as global_config
from .account import parse_subaccount

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
SubaccountInput = Union[SubaccountDescriptor, bytes, None]


class RequestSpacer:
    """
    Global minimum interval between request starts

    Each caller reserves the next free slot before sleeping, so concurrent
    callers are spaced too.
    """

    def __init__(
        self,
        spacing_seconds: float,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.spacing_seconds = spacing_seconds
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._last_start: Optional[float] = None

    @property
    def last_start(self) -> Optional[float]:
        return self._last_start

    async def wait(self) -> None:
        now = self._clock()
        start = now
        if self._last_start is not None:
            start = max(now, self._last_start + self.spacing_seconds)
        self._last_start = start
        delay = start - now
        if delay > 0:
            await self._sleep(delay)


def subaccount_key(subaccount: Optional[bytes]) -> Optional[str]:
    """Record key for a subaccount; the default account keys as None"""
    if subaccount is None or not any(subaccount):
        return None
    return subaccount.hex()


class BalanceAggregator:
    """
    Rate-limited balance queries for one owner

    Usage:
        aggregator = BalanceAggregator(gateway, owner="aaaaa-aa")
        record = await aggregator.get_balance(token_id)
        await aggregator.refresh_all([token_a, token_b, token_c])
        for record in aggregator.records():
            print(record)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        owner: str,
        balance_config: Optional[BalanceConfig] = None,
        spacer: Optional[RequestSpacer] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        """
        Initialize balance aggregator

        Args:
            ledger: Ledger collaborator
            owner: Owner principal text
            balance_config: Throttling settings (defaults to config)
            spacer: Shared request spacer (created from balance_config if omitted)
            clock: Wall clock for record timestamps
            sleep: Awaitable sleep for batch pauses
        """
        self._ledger = ledger
        self._owner = owner
        self._config = balance_config or global_config.balance
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep
        # an injected clock drives spacing too; otherwise spacing is monotonic
        self._spacer = spacer if spacer is not None else RequestSpacer(
            self._config.request_spacing_seconds,
            clock=clock,
            sleep=self._sleep,
        )
        self._records: Dict[BalanceKey, BalanceRecord] = {}
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def spacer(self) -> RequestSpacer:
        return self._spacer

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ========== Tracking ==========

    def track(self, token_id: str, subaccount: SubaccountInput = None) -> BalanceRecord:
        """Start tracking a balance; the record starts Idle"""
        return self._ensure_record(token_id, self._resolve_subaccount(subaccount)).copy()

    def untrack(self, token_id: str, subaccount: SubaccountInput = None) -> bool:
        """
        Stop tracking a balance

        A fetch still in flight for the record is discarded on completion.

        Returns:
            True if the record existed
        """
        key = (token_id, subaccount_key(self._resolve_subaccount(subaccount)))
        return self._records.pop(key, None) is not None

    def records(self) -> List[BalanceRecord]:
        """Snapshot of all tracked records"""
        return [record.copy() for record in self._records.values()]

    def record(self, token_id: str, subaccount: SubaccountInput = None) -> Optional[BalanceRecord]:
        key = (token_id, subaccount_key(self._resolve_subaccount(subaccount)))
        record = self._records.get(key)
        return record.copy() if record is not None else None

    # ========== Fetching ==========

    async def get_balance(self, token_id: str, subaccount: SubaccountInput = None) -> BalanceRecord:
        """
        Fetch one balance

        Errors are captured in the returned record (state ERROR), never raised.

        Raises:
            InvalidFormat: The subaccount descriptor is invalid (before any request)
        """
        resolved = self._resolve_subaccount(subaccount)
        record = self._ensure_record(token_id, resolved)
        generation = record.mark_loading()
        await self._fetch(record, generation, resolved)
        return record.copy()

    async def refresh_all(self, token_ids: Iterable[str], subaccount: SubaccountInput = None) -> None:
        """
        Refresh balances for many tokens

        All targeted records are set Loading first. Requests then run in
        list order, in batches of `batch_size`, with `batch_delay_seconds`
        between batches. Failures mark only their own record.

        Raises:
            InvalidFormat: The subaccount descriptor is invalid (before any request)
        """
        resolved = self._resolve_subaccount(subaccount)

        seen = set()
        ordered: List[str] = []
        for token_id in token_ids:
            if token_id not in seen:
                seen.add(token_id)
                ordered.append(token_id)
        if not ordered:
            return

        pending = []
        for token_id in ordered:
            record = self._ensure_record(token_id, resolved)
            pending.append((record, record.mark_loading()))

        batch_size = max(1, self._config.batch_size)
        with CorrelationContext("refresh"):
            logger.info(f"Refreshing {len(pending)} balances in batches of {batch_size}")
            for start in range(0, len(pending), batch_size):
                if start > 0:
                    await self._sleep(self._config.batch_delay_seconds)
                for record, generation in pending[start:start + batch_size]:
                    await self._fetch(record, generation, resolved)

            failed = sum(1 for record, _ in pending if record.state == BalanceState.ERROR)
            if failed:
                logger.warning(f"Refresh finished with {failed}/{len(pending)} errors")
            else:
                logger.info("Refresh finished")

    # ========== Polling ==========

    def start_polling(
        self,
        token_ids: Iterable[str],
        interval_seconds: float,
        subaccount: SubaccountInput = None,
    ) -> asyncio.Task:
        """
        Re-poll balances periodically through refresh_all

        Replaces any polling already running. Must be called from a
        running event loop.
        """
        tokens = list(token_ids)
        # Validate now so the loop never fails on input
        self._resolve_subaccount(subaccount)
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(tokens, interval_seconds, subaccount)
        )
        return self._poll_task

    async def stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        await self.stop_polling()

    async def _poll_loop(self, token_ids: List[str], interval_seconds: float, subaccount: SubaccountInput) -> None:
        while True:
            try:
                await self.refresh_all(token_ids, subaccount)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Balance polling round failed: {e}")
            await self._sleep(interval_seconds)

    # ========== Helpers ==========

    def _resolve_subaccount(self, subaccount: SubaccountInput) -> Optional[bytes]:
        if subaccount is None:
            return None
        if isinstance(subaccount, (bytes, bytearray)):
            if len(subaccount) != SUBACCOUNT_LENGTH:
                raise InvalidFormat(
                    f"Subaccount must be {SUBACCOUNT_LENGTH} bytes, got {len(subaccount)}",
                    ErrorCode.INVALID_SUBACCOUNT,
                    value=bytes(subaccount).hex(),
                )
            return bytes(subaccount)
        return parse_subaccount(subaccount).unwrap()

    def _ensure_record(self, token_id: str, subaccount: Optional[bytes]) -> BalanceRecord:
        key = (token_id, subaccount_key(subaccount))
        record = self._records.get(key)
        if record is None:
            record = BalanceRecord(token_id=token_id, subaccount_key=key[1])
            self._records[key] = record
        return record

    def _is_current(self, record: BalanceRecord, generation: int) -> bool:
        return self._records.get(record.key) is record and record.generation == generation

    async def _fetch(self, record: BalanceRecord, generation: int, subaccount: Optional[bytes]) -> None:
        await self._spacer.wait()
        ledger_subaccount = subaccount if subaccount_key(subaccount) is not None else None
        try:
            amount = await self._ledger.balance_of(record.token_id, self._owner, ledger_subaccount)
        except Exception as e:
            if not self._is_current(record, generation):
                logger.debug(f"Discarding stale error for {record.token_id}: {e}")
                return
            record.state = BalanceState.ERROR
            record.error = str(e)
            record.updated_at = self._clock()
            logger.warning(f"Balance fetch failed for {record.token_id}: {e}")
            return

        if not self._is_current(record, generation):
            logger.debug(f"Discarding stale balance for {record.token_id} (generation {generation})")
            return
        record.amount_raw = amount
        record.state = BalanceState.LOADED
        record.error = None
        record.updated_at = self._clock()

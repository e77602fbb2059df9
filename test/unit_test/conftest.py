"""
Shared fixtures for unit tests.

Provides a fake clock (with an awaitable sleep that advances it) and
in-memory collaborators so no test touches the network or real time.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icp_wallet_core.errors import PoolNotFound
from icp_wallet_core.infra.gateway import LedgerClient, PoolFactory, PoolStateSource
from icp_wallet_core.types import PoolIdentity, PoolState, Principal, TokenRef, make_pair_key


def canister_id(n: int) -> str:
    """Valid canister-style principal text for tests"""
    return Principal.from_bytes(n.to_bytes(8, "big") + b"\x01\x01").to_text()


class FakeClock:
    """Manually advanced clock; sleep() advances it and yields to the loop"""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeFactory(PoolFactory):
    """Factory returning configured pools by token pair"""

    def __init__(self):
        self.pools: Dict[str, str] = {}
        self.errors: List[Exception] = []
        self.calls: List[tuple] = []

    def add_pool(self, token_a: str, token_b: str, pool_id: str, fee: int = 3000) -> None:
        token0, token1 = sorted([token_a, token_b], key=str.lower)
        self.pools[make_pair_key(token0, token1, fee)] = pool_id

    async def get_pool(self, token0: TokenRef, token1: TokenRef, fee: int) -> PoolIdentity:
        self.calls.append((token0.address, token1.address, fee))
        if self.errors:
            raise self.errors.pop(0)
        pair_key = make_pair_key(token0.address, token1.address, fee)
        if pair_key not in self.pools:
            raise PoolNotFound.for_pair(pair_key)
        return PoolIdentity(
            pair_key=pair_key,
            canister_id=self.pools[pair_key],
            token0=token0,
            token1=token1,
            fee=fee,
        )


class FakeStateSource(PoolStateSource):
    """Pool state by canister id, with optional queued errors"""

    def __init__(self):
        self.states: Dict[str, PoolState] = {}
        self.errors: List[Exception] = []
        self.calls: List[str] = []

    def set_state(self, pool_id: str, token0: str, token1: str, sqrt_price_x96: int) -> None:
        self.states[pool_id] = PoolState(
            token0=TokenRef(token0),
            token1=TokenRef(token1),
            sqrt_price_x96=sqrt_price_x96,
            liquidity=10 ** 12,
        )

    async def get_pool_state(self, canister_id: str) -> PoolState:
        self.calls.append(canister_id)
        if self.errors:
            raise self.errors.pop(0)
        return self.states[canister_id]


class FakeLedger(LedgerClient):
    """Ledger returning configured balances; failing tokens raise"""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.balances: Dict[str, int] = {}
        self.failing: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[tuple] = []
        self.call_times: List[float] = []
        self.on_call = None
        self._clock = clock

    async def balance_of(self, token_id: str, owner: str, subaccount: Optional[bytes] = None) -> int:
        self.calls.append((token_id, owner, subaccount))
        if self._clock is not None:
            self.call_times.append(self._clock())
        if self.on_call is not None:
            self.on_call(token_id)
        amount = self.balances.get(token_id, 0)
        gate = self.gates.pop(token_id, None)
        if gate is not None:
            await gate.wait()
        if token_id in self.failing:
            raise self.failing[token_id]
        return amount


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_factory():
    return FakeFactory()


@pytest.fixture
def fake_state_source():
    return FakeStateSource()


@pytest.fixture
def fake_ledger(fake_clock):
    return FakeLedger(fake_clock)

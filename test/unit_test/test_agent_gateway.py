"""
Agent Gateway Unit Tests

Tests the ic-py backed gateway with a stand-in agent that records
queries and returns already-decoded Candid values.
"""

import sys
from pathlib import Path
from typing import Any, List

import httpx
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ic.principal import Principal as IcPrincipal

from icp_wallet_core import WalletCoreClient
from icp_wallet_core.config import Config, GatewayConfig
from icp_wallet_core.errors import (
    ErrorCode,
    CollaboratorUnavailable,
    ConfigurationError,
    InsufficientData,
    PoolNotFound,
)
from icp_wallet_core.infra.agent import AgentGateway
from icp_wallet_core.infra.gateway import CanisterGateway
from icp_wallet_core.infra.store import MemoryStore
from icp_wallet_core.types import ICP_LEDGER_ID, Q96, TokenRef

from conftest import canister_id

FACTORY_ID = canister_id(1)
POOL_ID = canister_id(2)
OWNER = "aaaaa-aa"


class RecordingAgent:
    """Replies from a queue; exceptions in the queue are raised"""

    def __init__(self, *replies: Any):
        self.replies: List[Any] = list(replies)
        self.calls: List[tuple] = []

    async def query_raw_async(self, canister_id, method_name, arg, return_type=None, effective_canister_id=None):
        self.calls.append((canister_id, method_name, arg))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return [{"type": "rec", "value": reply}]


def make_gateway(agent, fake_clock, max_retries: int = 3) -> AgentGateway:
    gateway_config = GatewayConfig(
        url="",
        timeout_seconds=5.0,
        max_retries=max_retries,
        retry_delay_seconds=0.5,
        transport="agent",
        agent_url="http://replica.test",
    )
    return AgentGateway(gateway_config, factory_id=FACTORY_ID, agent=agent, sleep=fake_clock.sleep)


class TestAgentPoolQueries:
    """Tests for factory and pool metadata queries"""

    @pytest.mark.asyncio
    async def test_get_pool(self, fake_clock):
        agent = RecordingAgent({"ok": {
            "canisterId": IcPrincipal.from_str(POOL_ID),
            "fee": 3000,
            "tickSpacing": 60,
        }})
        gateway = make_gateway(agent, fake_clock)

        pool = await gateway.get_pool(TokenRef("a-token"), TokenRef("b-token"), 3000)

        canister, method, arg = agent.calls[0]
        assert canister == FACTORY_ID
        assert method == "getPool"
        assert arg.startswith(b"DIDL")
        assert pool.canister_id == POOL_ID
        assert pool.pair_key == "a-token|b-token|3000"
        assert pool.tick_spacing == 60

    @pytest.mark.asyncio
    async def test_get_pool_err_is_not_found(self, fake_clock):
        agent = RecordingAgent({"err": {"InternalError": "pool not exist"}})
        gateway = make_gateway(agent, fake_clock)

        with pytest.raises(PoolNotFound) as exc_info:
            await gateway.get_pool(TokenRef("a"), TokenRef("b"), 3000)
        assert "pool not exist" in exc_info.value.message
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_get_pool_state(self, fake_clock):
        agent = RecordingAgent({"ok": {
            "token0": {"address": "a-token", "standard": "ICRC1"},
            "token1": {"address": "b-token", "standard": "ICRC2"},
            "sqrtPriceX96": 2 * Q96,
            "liquidity": 10 ** 30,
        }})
        gateway = make_gateway(agent, fake_clock)

        state = await gateway.get_pool_state(POOL_ID)

        assert agent.calls[0][:2] == (POOL_ID, "metadata")
        assert state.ratio == 4.0
        assert state.liquidity == 10 ** 30
        assert state.token1.standard == "ICRC2"

    @pytest.mark.asyncio
    async def test_get_pool_state_err(self, fake_clock):
        agent = RecordingAgent({"err": {"CommonError": None}})
        gateway = make_gateway(agent, fake_clock)

        with pytest.raises(InsufficientData) as exc_info:
            await gateway.get_pool_state(POOL_ID)
        assert exc_info.value.missing == "metadata"


class TestAgentBalanceQueries:
    """Tests for ICRC-1 balance queries"""

    @pytest.mark.asyncio
    async def test_balance_of(self, fake_clock):
        agent = RecordingAgent(123_456_789)
        gateway = make_gateway(agent, fake_clock)

        balance = await gateway.balance_of(ICP_LEDGER_ID, OWNER, bytes(31) + b"\x01")

        assert balance == 123_456_789
        assert agent.calls[0][:2] == (ICP_LEDGER_ID, "icrc1_balance_of")

    @pytest.mark.asyncio
    async def test_non_integer_balance(self, fake_clock):
        gateway = make_gateway(RecordingAgent("lots"), fake_clock)
        with pytest.raises(CollaboratorUnavailable) as exc_info:
            await gateway.balance_of(ICP_LEDGER_ID, OWNER)
        assert exc_info.value.code == ErrorCode.COLLABORATOR_INVALID_RESPONSE


class TestAgentFailures:
    """Tests for transport error mapping and retry"""

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, fake_clock):
        agent = RecordingAgent(httpx.ReadTimeout("slow"), 42)
        gateway = make_gateway(agent, fake_clock)

        assert await gateway.balance_of(ICP_LEDGER_ID, OWNER) == 42
        assert len(agent.calls) == 2
        assert fake_clock.sleeps == [pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_connection_errors_exhaust_retries(self, fake_clock):
        agent = RecordingAgent(*[httpx.ConnectError("refused") for _ in range(3)])
        gateway = make_gateway(agent, fake_clock)

        with pytest.raises(CollaboratorUnavailable) as exc_info:
            await gateway.balance_of(ICP_LEDGER_ID, OWNER)
        assert exc_info.value.code == ErrorCode.COLLABORATOR_CONNECTION_FAILED
        assert len(agent.calls) == 3

    @pytest.mark.asyncio
    async def test_reject_is_not_retried(self, fake_clock):
        agent = RecordingAgent(Exception("Canister reject the call: no such method"))
        gateway = make_gateway(agent, fake_clock)

        with pytest.raises(CollaboratorUnavailable) as exc_info:
            await gateway.get_pool_state(POOL_ID)
        assert exc_info.value.code == ErrorCode.COLLABORATOR_INVALID_RESPONSE
        assert "no such method" in exc_info.value.message
        assert len(agent.calls) == 1


class TestTransportSelection:
    """Tests for the client's choice of gateway"""

    def _settings(self, transport: str) -> Config:
        return Config(gateway=GatewayConfig(
            url="http://gw.test",
            transport=transport,
            agent_url="http://replica.test",
        ))

    def test_agent_is_default_transport(self):
        client = WalletCoreClient(settings=self._settings("agent"), store=MemoryStore())
        assert isinstance(client.gateway, AgentGateway)
        assert client.gateway.endpoint == "http://replica.test"

    def test_explicit_url_selects_http(self):
        client = WalletCoreClient(
            gateway_url="http://gw.test",
            settings=self._settings("agent"),
            store=MemoryStore(),
        )
        assert isinstance(client.gateway, CanisterGateway)

    def test_unknown_transport(self):
        with pytest.raises(ConfigurationError) as exc_info:
            WalletCoreClient(settings=self._settings("carrier-pigeon"), store=MemoryStore())
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

"""
Candid query transport over ic-py

AgentGateway talks to the swap factory, pool canisters and token ledgers
directly through an ic-py Agent (anonymous identity, query calls only).
Arguments are Candid-encoded with ic.candid and replies are decoded
against the types below, so record fields come back by name.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import httpx
from ic.agent import Agent
from ic.candid import Types, encode
from ic.client import Client
from ic.identity import Identity

from ..errors import CollaboratorUnavailable, InsufficientData, PoolNotFound
from ..config import GatewayConfig, config as global_config
from ..types import PoolIdentity, PoolState, TokenRef, make_pair_key
from .gateway import LedgerClient, PoolFactory, PoolStateSource, _parse_int, _parse_token
from .retry import call_with_retry

logger = logging.getLogger(__name__)

# ========== Candid types ==========

TOKEN_TYPE = Types.Record({"address": Types.Text, "standard": Types.Text})

SWAP_ERROR_TYPE = Types.Variant({
    "CommonError": Types.Null,
    "InternalError": Types.Text,
    "UnsupportedToken": Types.Text,
    "InsufficientFunds": Types.Null,
})

GET_POOL_ARG_TYPE = Types.Record({
    "token0": TOKEN_TYPE,
    "token1": TOKEN_TYPE,
    "fee": Types.Nat,
})

# Only the fields read here; Candid record decoding skips the rest
POOL_DATA_TYPE = Types.Record({
    "canisterId": Types.Principal,
    "fee": Types.Nat,
    "tickSpacing": Types.Int,
})

POOL_METADATA_TYPE = Types.Record({
    "token0": TOKEN_TYPE,
    "token1": TOKEN_TYPE,
    "sqrtPriceX96": Types.Nat,
    "liquidity": Types.Nat,
})

ACCOUNT_TYPE = Types.Record({
    "owner": Types.Principal,
    "subaccount": Types.Opt(Types.Vec(Types.Nat8)),
})


def _result_type(ok_type) -> Any:
    return Types.Variant({"ok": ok_type, "err": SWAP_ERROR_TYPE})


def _principal_text(value: Any) -> str:
    """Decoded Candid principals are ic-py Principal objects"""
    to_str = getattr(value, "to_str", None)
    return to_str() if callable(to_str) else str(value)


def _swap_error(err: Any) -> str:
    if isinstance(err, dict) and err:
        name, detail = next(iter(err.items()))
        return f"{name}: {detail}" if detail else str(name)
    return str(err)


class AgentGateway(PoolFactory, PoolStateSource, LedgerClient):
    """
    Query gateway backed by an ic-py Agent

    Usage:
        gateway = AgentGateway()
        state = await gateway.get_pool_state("mohjv-bqaaa-aaaag-qjyia-cai")
        balance = await gateway.balance_of(ICP_LEDGER_ID, owner)
    """

    def __init__(
        self,
        gateway_config: Optional[GatewayConfig] = None,
        factory_id: Optional[str] = None,
        agent: Optional[Agent] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._config = gateway_config or global_config.gateway
        self._factory_id = factory_id or global_config.price.swap_factory_id
        self._agent = agent if agent is not None else Agent(Identity(), Client(url=self._config.agent_url))
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return self._config.agent_url

    @property
    def agent(self) -> Agent:
        return self._agent

    async def close(self) -> None:
        """Nothing to release; ic-py opens a connection per request"""
        logger.debug(f"AgentGateway for {self.endpoint} closed")

    async def _query_once(self, canister_id: str, method: str, arg: bytes, return_type) -> Any:
        try:
            reply = await self._agent.query_raw_async(canister_id, method, arg, [return_type])
        except httpx.TimeoutException:
            raise CollaboratorUnavailable.timeout(self.endpoint, self._config.timeout_seconds)
        except httpx.RequestError as e:
            raise CollaboratorUnavailable.connection_failed(self.endpoint, e)
        except Exception as e:
            # replica rejects and undecodable replies
            raise CollaboratorUnavailable.invalid_response(
                self.endpoint, f"{method}@{canister_id}: {e}"
            ) from e

        if not reply:
            raise CollaboratorUnavailable.invalid_response(self.endpoint, f"{method}@{canister_id}: empty reply")
        return reply[0]["value"]

    async def query(self, canister_id: str, method: str, params: List[dict], return_type) -> Any:
        """
        Query a canister method with retry on transient failures

        Args:
            canister_id: Target canister
            method: Query method name
            params: ic.candid.encode parameter list
            return_type: Candid type of the single return value

        Returns:
            The decoded return value
        """
        arg = encode(params)
        return await call_with_retry(
            lambda: self._query_once(canister_id, method, arg, return_type),
            operation_name=f"{method}@{canister_id}",
            max_retries=self._config.max_retries,
            retry_delay=self._config.retry_delay_seconds,
            sleep=self._sleep,
        )

    # ========== PoolFactory ==========

    async def get_pool(self, token0: TokenRef, token1: TokenRef, fee: int) -> PoolIdentity:
        pair_key = make_pair_key(token0.address, token1.address, fee)
        reply = await self.query(
            self._factory_id,
            "getPool",
            [{"type": GET_POOL_ARG_TYPE, "value": {
                "token0": token0.to_dict(),
                "token1": token1.to_dict(),
                "fee": fee,
            }}],
            _result_type(POOL_DATA_TYPE),
        )
        if "err" in reply:
            raise PoolNotFound.for_pair(pair_key, _swap_error(reply["err"]))

        data = reply.get("ok")
        if not isinstance(data, dict) or data.get("canisterId") is None:
            raise InsufficientData(f"Factory returned no pool data for {pair_key}", missing="pool")
        return PoolIdentity(
            pair_key=pair_key,
            canister_id=_principal_text(data["canisterId"]),
            token0=token0,
            token1=token1,
            fee=_parse_int(data.get("fee", fee), "fee", pair_key),
            tick_spacing=_parse_int(data.get("tickSpacing"), "tickSpacing", pair_key),
        )

    # ========== PoolStateSource ==========

    async def get_pool_state(self, canister_id: str) -> PoolState:
        reply = await self.query(canister_id, "metadata", [], _result_type(POOL_METADATA_TYPE))
        if "err" in reply:
            raise InsufficientData(
                f"Pool {canister_id} metadata unavailable: {_swap_error(reply['err'])}",
                pool_id=canister_id,
                missing="metadata",
            )

        data = reply.get("ok")
        if not isinstance(data, dict):
            raise InsufficientData.missing_field(canister_id, "metadata")
        return PoolState(
            token0=_parse_token(data.get("token0"), "token0", canister_id),
            token1=_parse_token(data.get("token1"), "token1", canister_id),
            sqrt_price_x96=_parse_int(data.get("sqrtPriceX96"), "sqrtPriceX96", canister_id),
            liquidity=_parse_int(data.get("liquidity", 0), "liquidity", canister_id),
        )

    # ========== LedgerClient ==========

    async def balance_of(self, token_id: str, owner: str, subaccount: Optional[bytes] = None) -> int:
        account = {
            "owner": owner,
            "subaccount": [list(subaccount)] if subaccount is not None else [],
        }
        reply = await self.query(
            token_id,
            "icrc1_balance_of",
            [{"type": ACCOUNT_TYPE, "value": account}],
            Types.Nat,
        )
        if isinstance(reply, bool) or not isinstance(reply, int):
            raise CollaboratorUnavailable.invalid_response(
                self.endpoint, f"{token_id} balance is not an integer: {reply!r}"
            )
        return reply

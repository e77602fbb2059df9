"""
Collaborator interfaces and the HTTP canister gateway

The wallet core consumes three external services: the swap factory (pool
lookup), pool canisters (pool state) and token ledgers (balances). Each
is an abstract base class so tests and alternative transports can
substitute them.

CanisterGateway implements all three over an HTTP JSON query gateway:

    POST {url}/query
    {"canister_id": "...", "method": "...", "args": {...}}

    -> {"ok": <value>} | {"err": {"message": "..."}}

Big integers (balances, sqrtPriceX96, liquidity, fees) travel as decimal
strings.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..errors import (
    CollaboratorUnavailable,
    ConfigurationError,
    InsufficientData,
    PoolNotFound,
)
from ..config import config as global_config
from ..types import PoolIdentity, PoolState, TokenRef, make_pair_key
from .retry import call_with_retry

logger = logging.getLogger(__name__)


class PoolFactory(ABC):
    """Swap factory: resolves the pool canister for a sorted pair"""

    @abstractmethod
    async def get_pool(self, token0: TokenRef, token1: TokenRef, fee: int) -> PoolIdentity:
        """
        Look up the pool for a pair

        Args:
            token0: Lower-address token
            token1: Higher-address token
            fee: Fee tier

        Returns:
            Pool identity (canister id as reported by the factory)

        Raises:
            PoolNotFound: No pool exists for the pair
            CollaboratorUnavailable: Transport failure
        """
        ...


class PoolStateSource(ABC):
    """Pool canister metadata"""

    @abstractmethod
    async def get_pool_state(self, canister_id: str) -> PoolState:
        """
        Read current pool state

        Raises:
            InsufficientData: Metadata is missing required fields
            CollaboratorUnavailable: Transport failure
        """
        ...


class LedgerClient(ABC):
    """Token ledger balance queries"""

    @abstractmethod
    async def balance_of(self, token_id: str, owner: str, subaccount: Optional[bytes] = None) -> int:
        """
        Balance of an account in the token's smallest units

        Args:
            token_id: Ledger canister id
            owner: Owner principal (text)
            subaccount: 32-byte subaccount, None for the default account
        """
        ...


@dataclass
class GatewayClientConfig:
    """
    Gateway runtime configuration

    Pulls defaults from the global config (icp_wallet_core.config.GatewayConfig)
    for any unset value.
    """
    url: str = None
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    factory_id: str = None

    def __post_init__(self):
        if self.url is None:
            self.url = global_config.gateway.url
        if self.timeout_seconds is None:
            self.timeout_seconds = global_config.gateway.timeout_seconds
        if self.max_retries is None:
            self.max_retries = global_config.gateway.max_retries
        if self.retry_delay_seconds is None:
            self.retry_delay_seconds = global_config.gateway.retry_delay_seconds
        if self.factory_id is None:
            self.factory_id = global_config.price.swap_factory_id


def _parse_int(value: Any, field_name: str, pool_id: str) -> int:
    if value is None:
        raise InsufficientData.missing_field(pool_id, field_name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InsufficientData(
            f"Pool {pool_id} field {field_name} is not an integer: {value!r}",
            pool_id=pool_id,
            missing=field_name,
        )


def _parse_token(value: Any, field_name: str, pool_id: str) -> TokenRef:
    if isinstance(value, str) and value:
        return TokenRef(address=value)
    if not isinstance(value, dict) or not value.get("address"):
        raise InsufficientData.missing_field(pool_id, field_name)
    return TokenRef.from_dict(value)


class CanisterGateway(PoolFactory, PoolStateSource, LedgerClient):
    """
    HTTP JSON gateway for canister queries

    Usage:
        gateway = CanisterGateway(GatewayClientConfig(url="https://gw.example.com"))
        state = await gateway.get_pool_state("mohjv-bqaaa-aaaag-qjyia-cai")
        await gateway.close()
    """

    def __init__(
        self,
        config: Optional[GatewayClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._config = config or GatewayClientConfig()
        if not self._config.url:
            raise ConfigurationError.missing("IC_GATEWAY_URL")
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self._config.url.rstrip('/')}/query"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if the gateway created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Single request attempt, transport errors mapped to CollaboratorUnavailable"""
        client = self._get_client()
        try:
            response = await client.post(self.endpoint, json=body)
        except httpx.TimeoutException:
            raise CollaboratorUnavailable.timeout(self.endpoint, self._config.timeout_seconds)
        except httpx.RequestError as e:
            raise CollaboratorUnavailable.connection_failed(self.endpoint, e)

        if response.status_code == 429:
            raise CollaboratorUnavailable.rate_limited(self.endpoint)
        if response.status_code >= 500:
            raise CollaboratorUnavailable(
                f"Gateway HTTP error {response.status_code}",
                endpoint=self.endpoint,
            )
        if response.status_code >= 400:
            raise CollaboratorUnavailable.invalid_response(
                self.endpoint, f"HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CollaboratorUnavailable.invalid_response(self.endpoint, f"body is not JSON: {e}")
        if not isinstance(payload, dict) or ("ok" not in payload and "err" not in payload):
            raise CollaboratorUnavailable.invalid_response(self.endpoint, "expected 'ok' or 'err'")
        return payload

    async def query(self, canister_id: str, method: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """
        Query a canister method with retry on transient failures

        Returns:
            The reply envelope: {"ok": value} or {"err": {...}}

        Raises:
            CollaboratorUnavailable: After retries are exhausted
        """
        body = {"canister_id": canister_id, "method": method, "args": args}
        return await call_with_retry(
            lambda: self._post(body),
            operation_name=f"{method}@{canister_id}",
            max_retries=self._config.max_retries,
            retry_delay=self._config.retry_delay_seconds,
            sleep=self._sleep,
        )

    @staticmethod
    def _err_message(reply: Dict[str, Any]) -> str:
        err = reply.get("err")
        if isinstance(err, dict):
            return str(err.get("message", err))
        return str(err)

    # ========== PoolFactory ==========

    async def get_pool(self, token0: TokenRef, token1: TokenRef, fee: int) -> PoolIdentity:
        pair_key = make_pair_key(token0.address, token1.address, fee)
        reply = await self.query(
            self._config.factory_id,
            "getPool",
            {"token0": token0.to_dict(), "token1": token1.to_dict(), "fee": str(fee)},
        )
        if "err" in reply:
            raise PoolNotFound.for_pair(pair_key, self._err_message(reply))

        data = reply["ok"]
        if not isinstance(data, dict):
            raise InsufficientData(f"Factory returned no pool data for {pair_key}", missing="pool")
        canister_id = data.get("canisterId") or data.get("canister_id") or ""
        tick_spacing = data.get("tickSpacing")
        return PoolIdentity(
            pair_key=pair_key,
            canister_id=str(canister_id),
            token0=token0,
            token1=token1,
            fee=_parse_int(data.get("fee", fee), "fee", pair_key),
            tick_spacing=(
                _parse_int(tick_spacing, "tickSpacing", pair_key) if tick_spacing is not None else None
            ),
        )

    # ========== PoolStateSource ==========

    async def get_pool_state(self, canister_id: str) -> PoolState:
        reply = await self.query(canister_id, "metadata", {})
        if "err" in reply:
            raise InsufficientData(
                f"Pool {canister_id} metadata unavailable: {self._err_message(reply)}",
                pool_id=canister_id,
                missing="metadata",
            )

        data = reply["ok"]
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
        args = {
            "owner": str(owner),
            "subaccount": subaccount.hex() if subaccount is not None else None,
        }
        reply = await self.query(token_id, "icrc1_balance_of", args)
        if "err" in reply:
            raise CollaboratorUnavailable.invalid_response(
                self.endpoint, f"{token_id} balance query failed: {self._err_message(reply)}"
            )
        try:
            return int(reply["ok"])
        except (TypeError, ValueError):
            raise CollaboratorUnavailable.invalid_response(
                self.endpoint, f"{token_id} balance is not an integer: {reply['ok']!r}"
            )

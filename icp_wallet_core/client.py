"""
WalletCoreClient - Unified entry point for wallet core operations

Wires the price, pool, balance and account modules to their
collaborators and caches, and owns their lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional, Union, TYPE_CHECKING

from .config import Config, config as global_config
from .errors import ConfigurationError
from .infra.agent import AgentGateway
from .infra.cache import PoolCache, TtlCache
from .infra.gateway import (
    CanisterGateway,
    GatewayClientConfig,
    LedgerClient,
    PoolFactory,
    PoolStateSource,
)
from .infra.store import CacheStore, create_store
from .types import BalanceRecord, CodecResult, ParsedAccount, PoolIdentity

if TYPE_CHECKING:
    from .modules.account import AccountCodec
    from .modules.balance import BalanceAggregator, SubaccountInput
    from .modules.pool import PoolLocator
    from .modules.price import PriceOracle
    from .types import SubaccountDescriptor

logger = logging.getLogger(__name__)

Gateway = Union[AgentGateway, CanisterGateway]


class WalletCoreClient:
    """
    Unified wallet core client

    Provides access to operations through functional modules:
    - accounts: Account/subaccount parsing and encoding
    - pools: Token/ICP pool lookup
    - prices: ICP/USD, token/ICP and token/USD prices
    - balances: Rate-limited balance queries for the owner

    Usage:
        async with WalletCoreClient(gateway_url="https://gw.example.com", owner=principal) as client:
            usd = await client.get_token_usd_price(token_id)
            await client.refresh_all([token_a, token_b])
            for record in client.balances.records():
                print(record)

        # Custom collaborators (e.g. in tests)
        client = WalletCoreClient(factory=fake, state_source=fake, ledger=fake, store=MemoryStore())
    """

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        owner: Optional[str] = None,
        factory: Optional[PoolFactory] = None,
        state_source: Optional[PoolStateSource] = None,
        ledger: Optional[LedgerClient] = None,
        store: Optional[CacheStore] = None,
        gateway_config: Optional[GatewayClientConfig] = None,
        settings: Optional[Config] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize WalletCoreClient

        Args:
            gateway_url: JSON query gateway URL; selects the HTTP transport
                (overrides IC_GATEWAY_URL)
            owner: Principal text whose balances are tracked
            factory: Swap factory collaborator (defaults to the gateway; the
                gateway is an ic-py agent unless IC_TRANSPORT=http or a
                gateway URL/config is given)
            state_source: Pool state collaborator (defaults to the gateway)
            ledger: Ledger collaborator (defaults to the gateway)
            store: Cache persistence (defaults to CacheConfig)
            gateway_config: HTTP gateway runtime overrides
            settings: Configuration (defaults to the global config)
            clock: Wall clock for cache timestamps
            sleep: Awaitable sleep for throttling and retries
        """
        self._settings = settings or global_config
        self._owner = owner
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep

        self._gateway: Optional[Gateway] = None
        if factory is None or state_source is None or ledger is None:
            self._gateway = self._build_gateway(gateway_url, gateway_config)

        self._factory = factory or self._gateway
        self._state_source = state_source or self._gateway
        self._ledger = ledger or self._gateway

        self._store = store or create_store(
            self._settings.cache.directory,
            persist=self._settings.cache.persist,
        )

        # Lazy-loaded modules
        self._accounts: Optional["AccountCodec"] = None
        self._pools: Optional["PoolLocator"] = None
        self._prices: Optional["PriceOracle"] = None
        self._balances: Optional["BalanceAggregator"] = None
        self._closed = False

    def _build_gateway(
        self,
        gateway_url: Optional[str],
        gateway_config: Optional[GatewayClientConfig],
    ) -> Gateway:
        transport = self._settings.gateway.transport.strip().lower()
        if gateway_url or gateway_config is not None or transport == "http":
            return CanisterGateway(
                gateway_config or GatewayClientConfig(url=gateway_url),
                sleep=self._sleep,
            )
        if transport != "agent":
            raise ConfigurationError.invalid("IC_TRANSPORT", f"unknown transport {transport!r}")
        return AgentGateway(
            self._settings.gateway,
            factory_id=self._settings.price.swap_factory_id,
            sleep=self._sleep,
        )

    @property
    def gateway(self) -> Optional[Gateway]:
        """Agent or HTTP gateway, if the client created one"""
        return self._gateway

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def accounts(self) -> "AccountCodec":
        """
        Account codec

        Provides:
        - parse_account(text, subaccount): Parse account text
        - encode_long_account(account): Encode ICRC-1 long form
        - parse_subaccount(descriptor): Resolve subaccount bytes
        """
        if self._accounts is None:
            from .modules.account import AccountCodec
            self._accounts = AccountCodec()
        return self._accounts

    @property
    def pools(self) -> "PoolLocator":
        """
        Pool locator with a persisted, non-expiring cache

        Provides:
        - get_pool(token_id): Token/ICP pool identity
        - clear(): Drop cached pools
        """
        if self._pools is None:
            from .modules.pool import PoolLocator
            cache = PoolCache(self._store)
            cache.load()
            self._pools = PoolLocator(
                self._factory,
                cache,
                icp_ledger_id=self._settings.price.icp_ledger_id,
                fee=self._settings.price.pool_fee,
            )
        return self._pools

    @property
    def prices(self) -> "PriceOracle":
        """
        Price oracle

        Provides:
        - get_icp_usd_price(): ICP in USD (60s cache)
        - get_token_icp_price(token_id): Token in ICP (300s cache)
        - get_token_usd_price(token_id): Token in USD
        - clear_caches(): Reset price and pool caches
        """
        if self._prices is None:
            from .modules.price import PriceOracle, ICP_USD_NAMESPACE, TOKEN_ICP_NAMESPACE
            price_config = self._settings.price
            self._prices = PriceOracle(
                self.pools,
                self._state_source,
                icp_usd_cache=TtlCache(
                    ICP_USD_NAMESPACE, price_config.icp_usd_ttl_seconds, clock=self._clock
                ),
                token_icp_cache=TtlCache(
                    TOKEN_ICP_NAMESPACE, price_config.token_icp_ttl_seconds,
                    clock=self._clock, store=self._store,
                ),
                price_config=price_config,
            )
            self._prices.load()
        return self._prices

    @property
    def balances(self) -> "BalanceAggregator":
        """
        Balance aggregator for the owner

        Provides:
        - get_balance(token_id, subaccount): Fetch one balance
        - refresh_all(token_ids, subaccount): Batched refresh
        - track/untrack/records/record: Tracking scope
        - start_polling/stop_polling: Periodic refresh
        """
        if self._balances is None:
            if not self._owner:
                raise ConfigurationError.missing("owner")
            from .modules.balance import BalanceAggregator
            self._balances = BalanceAggregator(
                self._ledger,
                self._owner,
                balance_config=self._settings.balance,
                clock=self._clock,
                sleep=self._sleep,
            )
        return self._balances

    # ========== Shortcuts ==========

    async def get_pool(self, token_id: str) -> PoolIdentity:
        return await self.pools.get_pool(token_id)

    async def get_icp_usd_price(self) -> float:
        return await self.prices.get_icp_usd_price()

    async def get_token_icp_price(self, token_id: str) -> float:
        return await self.prices.get_token_icp_price(token_id)

    async def get_token_usd_price(self, token_id: str) -> float:
        return await self.prices.get_token_usd_price(token_id)

    async def get_balance(self, token_id: str, subaccount: "SubaccountInput" = None) -> BalanceRecord:
        return await self.balances.get_balance(token_id, subaccount)

    async def refresh_all(self, token_ids: Iterable[str], subaccount: "SubaccountInput" = None) -> None:
        await self.balances.refresh_all(token_ids, subaccount)

    def parse_account(
        self,
        text: str,
        subaccount: Optional["SubaccountDescriptor"] = None,
    ) -> CodecResult[ParsedAccount]:
        return self.accounts.parse_account(text, subaccount)

    def encode_long_account(self, account: ParsedAccount) -> str:
        return self.accounts.encode_long_account(account)

    # ========== Lifecycle ==========

    async def close(self):
        """Stop polling and close gateway connections"""
        if self._closed:
            return
        self._closed = True
        if self._balances is not None:
            await self._balances.close()
        if self._gateway is not None:
            await self._gateway.close()
        logger.debug("WalletCoreClient closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        endpoint = self._gateway.endpoint if self._gateway is not None else "custom"
        return f"WalletCoreClient(endpoint={endpoint}, owner={self._owner})"

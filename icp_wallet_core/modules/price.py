"""
Price Oracle Module

Derives token prices from AMM pool state.

Price math:
    ratio = (sqrtPriceX96 / 2^96)^2          raw token1 per raw token0
    price = ratio        if priced token is token0
          = 1 / ratio    if priced token is token1
    price *= 10^(decimals_priced - decimals_quote)
"""

import asyncio
import logging
from typing import Callable, Optional

from ..types import PoolState, get_token_decimals
from ..errors import InsufficientData
from ..infra.cache import TtlCache
from ..infra.gateway import PoolStateSource
from ..config import PriceConfig, config as global_config
from .pool import PoolLocator

logger = logging.getLogger(__name__)

ICP_USD_CACHE_KEY = "ICP_USD"
ICP_USD_NAMESPACE = "icp_usd_price"
TOKEN_ICP_NAMESPACE = "token_icp_prices"

DecimalsLookup = Callable[[str], Optional[int]]


def price_from_pool_state(
    state: PoolState,
    priced_token: str,
    decimals_priced: int,
    decimals_quote: int,
    pool_id: Optional[str] = None,
) -> float:
    """
    Price of one whole priced token in whole units of the other pool token

    Args:
        state: Pool state snapshot
        priced_token: Ledger id of the token being priced
        decimals_priced: Decimals of the priced token
        decimals_quote: Decimals of the quote token
        pool_id: Pool canister id, for error reporting

    Raises:
        InsufficientData: Pool does not contain the token or has no price
    """
    if not state.contains(priced_token):
        raise InsufficientData(
            f"Pool {pool_id} does not contain {priced_token}",
            pool_id=pool_id,
            missing=priced_token,
        )
    if state.sqrt_price_x96 <= 0:
        raise InsufficientData.missing_field(pool_id, "sqrtPriceX96")

    ratio = state.ratio
    if ratio == 0:
        raise InsufficientData(f"Pool {pool_id} price underflows", pool_id=pool_id, missing="sqrtPriceX96")

    price = ratio if priced_token == state.token0.address else 1 / ratio
    return price * (10 ** (decimals_priced - decimals_quote))


class PriceOracle:
    """
    USD and ICP prices with TTL caches

    Two cache tiers:
    - ICP/USD: one entry, read from the ICP/USDC pool (TTL 60s)
    - token/ICP: one entry per token, read from the token/ICP pool (TTL 300s)

    Failed fetches are never cached; an expired entry is a miss.

    Usage:
        oracle = PriceOracle(locator, gateway)
        icp_usd = await oracle.get_icp_usd_price()
        usd = await oracle.get_token_usd_price(token_id)
    """

    def __init__(
        self,
        locator: PoolLocator,
        state_source: PoolStateSource,
        icp_usd_cache: Optional[TtlCache] = None,
        token_icp_cache: Optional[TtlCache] = None,
        decimals_lookup: Optional[DecimalsLookup] = None,
        price_config: Optional[PriceConfig] = None,
    ):
        self._config = price_config or global_config.price
        self._locator = locator
        self._state_source = state_source
        self._icp_usd_cache = icp_usd_cache if icp_usd_cache is not None else TtlCache(
            ICP_USD_NAMESPACE, self._config.icp_usd_ttl_seconds
        )
        self._token_icp_cache = token_icp_cache if token_icp_cache is not None else TtlCache(
            TOKEN_ICP_NAMESPACE, self._config.token_icp_ttl_seconds
        )
        self._decimals_lookup = decimals_lookup or get_token_decimals

    @property
    def icp_ledger_id(self) -> str:
        return self._config.icp_ledger_id

    @property
    def icp_usd_cache(self) -> TtlCache:
        return self._icp_usd_cache

    @property
    def token_icp_cache(self) -> TtlCache:
        return self._token_icp_cache

    def token_decimals(self, token_id: str) -> int:
        decimals = self._decimals_lookup(token_id)
        if decimals is None:
            logger.debug(f"Unknown decimals for {token_id}, assuming {self._config.default_token_decimals}")
            return self._config.default_token_decimals
        return decimals

    async def get_icp_usd_price(self) -> float:
        """
        USD price of one ICP

        Raises:
            InsufficientData: ICP/USDC pool state is unusable
            CollaboratorUnavailable: Pool unreachable
        """
        cached = self._icp_usd_cache.get(ICP_USD_CACHE_KEY)
        if cached is not None:
            return cached

        pool_id = self._config.icp_usdc_pool_id
        state = await self._state_source.get_pool_state(pool_id)
        price = price_from_pool_state(
            state,
            self.icp_ledger_id,
            decimals_priced=self._config.icp_decimals,
            decimals_quote=self._config.usdc_decimals,
            pool_id=pool_id,
        )
        self._icp_usd_cache.set(ICP_USD_CACHE_KEY, price)
        logger.debug(f"ICP/USD price: {price}")
        return price

    async def get_token_icp_price(self, token_id: str) -> float:
        """
        ICP price of one whole token

        ICP itself is priced at 1.0 without any lookup.

        Raises:
            PoolNotFound: No token/ICP pool
            InsufficientData: Pool state is unusable
            CollaboratorUnavailable: Factory or pool unreachable
        """
        if token_id == self.icp_ledger_id:
            return 1.0

        cached = self._token_icp_cache.get(token_id)
        if cached is not None:
            return cached

        pool = await self._locator.get_pool(token_id)
        state = await self._state_source.get_pool_state(pool.canister_id)
        price = price_from_pool_state(
            state,
            token_id,
            decimals_priced=self.token_decimals(token_id),
            decimals_quote=self._config.icp_decimals,
            pool_id=pool.canister_id,
        )
        self._token_icp_cache.set(token_id, price)
        logger.debug(f"{token_id}/ICP price: {price}")
        return price

    async def get_token_usd_price(self, token_id: str) -> float:
        """
        USD price of one whole token: token/ICP x ICP/USD

        Both legs are fetched concurrently; either failure fails the call.
        """
        token_icp, icp_usd = await asyncio.gather(
            self.get_token_icp_price(token_id),
            self.get_icp_usd_price(),
        )
        return token_icp * icp_usd

    def load(self) -> int:
        """Load persisted token prices (expired entries are dropped)"""
        return self._token_icp_cache.load()

    def clear_caches(self) -> None:
        """Reset both price tiers and the pool cache"""
        self._icp_usd_cache.clear()
        self._token_icp_cache.clear()
        self._locator.clear()
        logger.info("Price and pool caches cleared")

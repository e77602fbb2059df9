"""
Pool Locator Module

Resolves the AMM pool that prices a token against ICP.
"""

import logging
from dataclasses import replace
from typing import Optional

from ..types import Principal, PoolIdentity, TokenRef, make_pair_key, sort_tokens
from ..errors import ConfigurationError, InsufficientData
from ..infra.cache import PoolCache
from ..infra.gateway import PoolFactory
from ..config import config as global_config

logger = logging.getLogger(__name__)


class PoolLocator:
    """
    Pool lookup with a permanent cache

    A pair's pool never changes once created, so successful lookups are
    cached with no expiry (and persisted through the cache's store).
    Failures are never cached: a missing pool may be created later.

    Usage:
        locator = PoolLocator(factory, PoolCache(store))
        pool = await locator.get_pool("mxzaz-hqaaa-aaaar-qaada-cai")
        print(pool.canister_id, pool.token0.address)
    """

    def __init__(
        self,
        factory: PoolFactory,
        cache: Optional[PoolCache] = None,
        icp_ledger_id: Optional[str] = None,
        fee: Optional[int] = None,
    ):
        """
        Initialize pool locator

        Args:
            factory: Swap factory collaborator
            cache: Pool cache (in-memory only if not provided)
            icp_ledger_id: Quote token ledger (defaults to config)
            fee: Fee tier to look up (defaults to config, 3000 = 0.3%)
        """
        self._factory = factory
        self._cache = cache if cache is not None else PoolCache()
        self._icp_ledger_id = icp_ledger_id or global_config.price.icp_ledger_id
        self._fee = fee if fee is not None else global_config.price.pool_fee

    @property
    def cache(self) -> PoolCache:
        return self._cache

    @property
    def icp_ledger_id(self) -> str:
        return self._icp_ledger_id

    async def get_pool(self, token_id: str) -> PoolIdentity:
        """
        Get the token/ICP pool

        Args:
            token_id: Ledger canister id of the token

        Returns:
            Pool identity with a normalized canister id

        Raises:
            PoolNotFound: Factory has no pool for the pair
            InsufficientData: Factory returned an invalid canister id
            CollaboratorUnavailable: Factory unreachable
        """
        if token_id == self._icp_ledger_id:
            raise ConfigurationError.invalid("token_id", "ICP cannot be paired with itself")
        return await self.get_pair_pool(TokenRef(token_id), TokenRef(self._icp_ledger_id))

    async def get_pair_pool(self, token_a: TokenRef, token_b: TokenRef) -> PoolIdentity:
        """Get the pool for an arbitrary unordered pair at the configured fee"""
        token0, token1 = sort_tokens(token_a, token_b)
        pair_key = make_pair_key(token0.address, token1.address, self._fee)

        cached = self._cache.get(pair_key)
        if cached is not None:
            logger.debug(f"Pool cache hit: {pair_key} -> {cached.canister_id}")
            return cached

        logger.debug(f"Looking up pool for {pair_key}")
        pool = await self._factory.get_pool(token0, token1, self._fee)

        try:
            canister_id = Principal.from_text(pool.canister_id).to_text()
        except ValueError as e:
            raise InsufficientData(
                f"Factory returned invalid pool canister id for {pair_key}: {e}",
                pool_id=pool.canister_id or None,
                missing="canister_id",
            )

        pool = replace(pool, pair_key=pair_key, canister_id=canister_id, token0=token0, token1=token1)
        self._cache.set(pool)
        logger.info(f"Resolved pool {pair_key} -> {canister_id}")
        return pool

    def clear(self) -> None:
        """Drop cached pools from memory and persistence"""
        self._cache.clear()
